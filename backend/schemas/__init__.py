"""
数据验证模式目录
"""

from .auth import UserLogin, UserRegister, UserInfo
from .user import UserAdminCreate, UserPatch
from .response import success, paginate

__all__ = [
    # 认证
    "UserLogin", "UserRegister", "UserInfo",
    # 用户管理
    "UserAdminCreate", "UserPatch",
    # 响应
    "success", "paginate",
]
