"""
路由目录
"""

from . import auth, crypto, user

__all__ = ["auth", "crypto", "user"]
