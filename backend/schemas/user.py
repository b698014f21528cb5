"""
用户管理数据验证
后台创建用户与部分更新
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.security import ROLE_LEVELS, ROLE_USER
from models.account import USER_STATUSES, USER_STATUS_ACTIVE
from .auth import validate_username, validate_email, PASSWORD_MIN_LENGTH


def _check_role(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in ROLE_LEVELS:
        raise ValueError(f"无效的角色: {value}")
    return value


def _check_status(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in USER_STATUSES:
        raise ValueError(f"无效的用户状态: {value}")
    return value


class UserAdminCreate(BaseModel):
    """管理员创建用户"""
    username: str
    email: str
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    role: str = ROLE_USER
    status: str = USER_STATUS_ACTIVE

    @field_validator("username")
    @classmethod
    def check_username(cls, v):
        return validate_username(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        return _check_role(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return _check_status(v)


class UserPatch(BaseModel):
    """
    用户部分更新

    只接受 username/password/email/role/status，其余字段忽略
    """
    username: Optional[str] = None
    password: Optional[str] = Field(None, min_length=PASSWORD_MIN_LENGTH)
    email: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("username")
    @classmethod
    def check_username(cls, v):
        return None if v is None else validate_username(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return None if v is None else validate_email(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        return _check_role(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return _check_status(v)
