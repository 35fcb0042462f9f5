from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import TESTING

# purpose: one slowapi limiter shared by the app state and the public routes
# status: active

limiter = Limiter(key_func=get_remote_address, enabled=not TESTING)


def rate_limit(limit: str):
    if TESTING:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)
