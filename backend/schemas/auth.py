"""
认证数据验证
用户注册、登录、信息等
"""

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PASSWORD_MIN_LENGTH = 6


def validate_username(value: str) -> str:
    """用户名：3-20 位字母、数字或下划线"""
    value = value.strip()
    if not 3 <= len(value) <= 20:
        raise ValueError("用户名长度需要在 3-20 个字符之间")
    if not USERNAME_PATTERN.match(value):
        raise ValueError("用户名只能包含字母、数字和下划线")
    return value


def validate_email(value: str) -> str:
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("邮箱格式不正确")
    return value


class EncryptedPassword(BaseModel):
    """
    密码提交方式

    明文 password，或经会话加密的 encrypted_password + session_id + client_public_key
    """
    password: Optional[str] = None
    encrypted_password: Optional[str] = None
    session_id: Optional[str] = None
    client_public_key: Optional[str] = None

    @property
    def is_encrypted(self) -> bool:
        return bool(self.encrypted_password and self.session_id and self.client_public_key)


class UserLogin(EncryptedPassword):
    """用户登录"""
    username: str = Field(..., min_length=1)


class UserRegister(EncryptedPassword):
    """用户注册（密码长度在解密后校验）"""
    username: str
    email: str

    @field_validator("username")
    @classmethod
    def check_username(cls, v):
        return validate_username(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class UserInfo(BaseModel):
    """用户信息"""
    id: int
    username: str
    email: str
    role: str
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
