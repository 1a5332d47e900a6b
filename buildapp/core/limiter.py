# buildapp/core/limiter.py
"""
Rate limiter configuration module.
Kept separate so endpoint modules and main.py can both import it.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
