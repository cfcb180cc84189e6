"""Async PostgREST client for the hosted document store.

All Supabase HTTP traffic goes through ``SupabaseClient``. It speaks just
enough PostgREST for the packet store: ``select``, ``insert``, ``update``
(always filtered) and ``rpc``. Requests authenticate with the service-role
key, which only ever lives in request headers.
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
    SupabaseTransportError,
)

Filters = Mapping[str, "tuple[str, Any] | Any"]

RETURN_REPRESENTATION = "return=representation"

_ERRORS_BY_STATUS: dict[int, type[SupabaseError]] = {
    401: SupabaseAuthError,
    403: SupabaseAuthError,
    404: SupabaseNotFoundError,
    409: SupabaseConflictError,
}

_LITERALS = {None: "null", True: "true", False: "false"}


def _literal(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return _LITERALS[value]
    return str(value)


def _filters_to_params(filters: Filters | None) -> dict[str, str]:
    """``{"owner_id": ("eq", "u1")}`` -> ``{"owner_id": "eq.u1"}``.

    A bare value means ``eq``. ``None`` is only valid with ``is``.
    """
    params = {}
    for column, condition in (filters or {}).items():
        op, value = condition if isinstance(condition, tuple) else ("eq", condition)
        if value is None and op != "is":
            raise ValueError(f"{column}: {op} does not support None; use 'is'")
        params[column] = f"{op}.{_literal(value)}"
    return params


def _error_for_response(resp: httpx.Response) -> SupabaseError:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}
    err_cls = _ERRORS_BY_STATUS.get(resp.status_code, SupabaseError)
    return err_cls(
        status_code=resp.status_code,
        message=body.get("message") or resp.text,
        code=body.get("code"),
        details=body.get("details"),
    )


class SupabaseClient:
    """Service-role PostgREST client.

    Args:
        supabase_url: Project URL, e.g. ``https://xyz.supabase.co``.
        service_role_key: Service-role API key.
        schema: Postgres schema to read and write.
        http_client: Shared ``httpx.AsyncClient``; the client only closes
            clients it created itself.
        timeout_seconds: Per-request timeout.
    """

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        schema: str = "public",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._rest_url = supabase_url.rstrip("/") + "/rest/v1"
        self._key = service_role_key
        self._schema = schema
        self._timeout = httpx.Timeout(timeout_seconds)
        self._http = http_client if http_client is not None else httpx.AsyncClient()
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _headers(self, *, writes: bool, prefer: str | None) -> dict[str, str]:
        headers = {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Accept-Profile": self._schema,
        }
        if writes:
            headers["Content-Profile"] = self._schema
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Perform one request and decode the JSON body (``None`` if empty).

        Raises:
            SupabaseTransportError: No response was received.
            SupabaseError: PostgREST answered with a 4xx/5xx status.
        """
        try:
            resp = await self._http.request(
                method,
                f"{self._rest_url}/{path}",
                params=params,
                json=body,
                headers=self._headers(writes=method != "GET", prefer=prefer),
                timeout=self._timeout,
            )
        except httpx.TransportError as exc:
            raise SupabaseTransportError(
                status_code=0, message=f"{method} {path}: {type(exc).__name__}",
            ) from exc

        if resp.is_error:
            raise _error_for_response(resp)
        return resp.json() if resp.content else None

    async def _send_for_rows(self, method: str, path: str, **kwargs: Any) -> list[dict[str, Any]]:
        rows = await self._send(method, path, **kwargs)
        if isinstance(rows, list):
            return rows
        raise SupabaseError(
            status_code=500, message=f"{method} {path}: expected a JSON array",
        )

    # ── Table operations ──────────────────────────────────────────

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        params = {**_filters_to_params(filters), "select": columns}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(int(limit))
        return await self._send_for_rows("GET", table, params=params)

    async def insert(self, table: str, data: Mapping[str, Any]) -> list[dict[str, Any]]:
        return await self._send_for_rows(
            "POST", table, body=dict(data), prefer=RETURN_REPRESENTATION,
        )

    async def update(
        self,
        table: str,
        filters: Filters,
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        """Patch matching rows and return them. Unfiltered updates are refused."""
        if not filters:
            raise ValueError("update requires at least one filter")
        return await self._send_for_rows(
            "PATCH",
            table,
            params=_filters_to_params(filters),
            body=dict(data),
            prefer=RETURN_REPRESENTATION,
        )

    # ── Functions ─────────────────────────────────────────────────

    async def rpc(self, function_name: str, args: Mapping[str, Any] | None = None) -> Any:
        return await self._send("POST", f"rpc/{function_name}", body=dict(args or {}))
