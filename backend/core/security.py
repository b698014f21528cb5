"""
统一鉴权模块
提供JWT令牌生成、验证、密码处理和角色层级检查
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
from jose import JWTError, jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from .config import get_settings
from .errors import AuthException, PermissionException, ErrorCode

# Bearer令牌认证（未携带时交由 Cookie 兜底）
security = HTTPBearer(auto_error=False)

# 角色层级：数值越大权限越高
ROLE_USER = "user"
ROLE_EDITOR = "editor"
ROLE_ADMIN = "admin"
ROLE_LEVELS = {
    ROLE_USER: 1,
    ROLE_EDITOR: 2,
    ROLE_ADMIN: 3,
}


class TokenData(BaseModel):
    """令牌数据"""
    user_id: int
    username: str
    role: str = ROLE_USER


def role_level(role: Optional[str]) -> int:
    """未知角色视为 0 级"""
    return ROLE_LEVELS.get(role or "", 0)


def has_role(actual: Optional[str], required: str) -> bool:
    """检查角色是否达到要求的层级"""
    return role_level(actual) >= role_level(required)


def hash_password(password: str) -> str:
    """
    加密密码
    bcrypt 限制密码长度不超过 72 字节
    """
    password_bytes = str(password).encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    password_bytes = str(plain_password).encode('utf-8')[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
    except ValueError:
        # 存储的哈希格式不合法
        return False


def create_token(data: TokenData, expires_delta: Optional[timedelta] = None) -> str:
    """
    创建JWT令牌

    Args:
        data: 令牌数据
        expires_delta: 过期时间增量，默认使用配置值
    """
    settings = get_settings()
    to_encode = data.model_dump()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[TokenData]:
    """解码JWT令牌，无效或过期时返回 None"""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenData(**payload)
    except (JWTError, ValueError):
        return None


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """优先读取 Authorization 头，其次读取认证 Cookie"""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().auth_cookie_name)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenData]:
    """获取当前用户，匿名访问时返回 None"""
    token = _extract_token(request, credentials)
    if not token:
        return None
    return decode_token(token)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenData:
    """获取当前用户（依赖注入用）"""
    token = _extract_token(request, credentials)
    if not token:
        raise AuthException(ErrorCode.UNAUTHORIZED)

    token_data = decode_token(token)
    if token_data is None:
        raise AuthException(ErrorCode.TOKEN_INVALID)

    return token_data


def require_role(role: str):
    """角色层级检查依赖工厂"""
    async def role_checker(user: TokenData = Depends(get_current_user)) -> TokenData:
        if not has_role(user.role, role):
            raise PermissionException(f"需要 {role} 及以上角色")
        return user
    return role_checker


def require_admin():
    """仅允许系统管理员访问（role=admin）"""
    async def admin_checker(user: TokenData = Depends(get_current_user)) -> TokenData:
        if not has_role(user.role, ROLE_ADMIN):
            raise PermissionException("仅系统管理员可执行此操作")
        return user
    return admin_checker
