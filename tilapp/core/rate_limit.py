"""Shared slowapi limiter; limits are read from settings on each check."""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from tilapp.config.settings import get_settings


def default_limit() -> str:
    return get_settings().rate_limit_default


def auth_limit() -> str:
    return get_settings().rate_limit_auth


limiter = Limiter(key_func=get_remote_address, default_limits=[default_limit])
