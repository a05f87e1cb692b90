"""
Shared slowapi limiter.
Registered on the application state and used by route decorators.
"""
from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
