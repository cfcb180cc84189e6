"""Revocable, time-limited share packets for family records."""

from .main import create_app, create_app_from_env
from .settings import SharePacketSettings

__all__ = ["create_app", "create_app_from_env", "SharePacketSettings"]
