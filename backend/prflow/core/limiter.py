"""Rate limiter singleton shared by main.py and the auth routes."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from prflow.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.APP_ENV != "test")
