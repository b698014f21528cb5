"""
认证路由
用户登录、注册、退出

登录与注册支持两种密码提交方式：明文 password，
或通过 /api/crypto/public-key 会话加密后的 encrypted_password
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.crypto_session import crypto_sessions
from core.database import get_db
from core.errors import AuthException, ValidationException, ConflictException, ErrorCode
from core.events import event_bus, Events
from core.repository import UserRepository, commit
from core.security import (
    hash_password,
    verify_password,
    create_token,
    get_optional_user,
    TokenData,
    ROLE_USER,
)
from models import User
from models.account import USER_STATUS_ACTIVE
from schemas import UserLogin, UserRegister, UserInfo, success
from schemas.auth import EncryptedPassword, PASSWORD_MIN_LENGTH
from utils.request import get_client_ip

logger = logging.getLogger(__name__)
router = APIRouter(tags=["认证"])


def resolve_password(data: EncryptedPassword) -> Optional[str]:
    """取出明文密码：优先解密会话加密的密码，会话用后即删除"""
    if data.is_encrypted:
        password = crypto_sessions.decrypt(data.session_id, data.client_public_key, data.encrypted_password)
        crypto_sessions.remove(data.session_id)
        return password
    return data.password or None


def set_auth_cookie(response: Response, token: str):
    settings = get_settings()
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.auth_cookie_max_age,
        httponly=True,
        samesite="lax",
        path="/",
    )


def issue_token(user: User) -> str:
    return create_token(TokenData(user_id=user.id, username=user.username, role=user.role))


@router.post("/login")
async def login(data: UserLogin, request: Request, response: Response, db: AsyncSession = Depends(get_db)):
    """用户登录"""
    client_ip = get_client_ip(request)
    password = resolve_password(data)
    if not password:
        raise AuthException(ErrorCode.PASSWORD_REQUIRED)

    user = await UserRepository(db).get_by_username(data.username)

    # 用户不存在或密码错误
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"登录失败 - IP: {client_ip}, 用户名: {data.username}")
        raise AuthException(ErrorCode.PASSWORD_INCORRECT)

    if user.status != USER_STATUS_ACTIVE:
        logger.warning(f"登录被阻止 - IP: {client_ip}, 用户ID: {user.id}, 状态: {user.status}")
        raise AuthException(ErrorCode.USER_INACTIVE)

    token = issue_token(user)
    set_auth_cookie(response, token)
    event_bus.emit(Events.USER_LOGIN, "auth", {"user_id": user.id, "ip": client_ip})
    logger.info(f"用户登录成功: {user.username}")

    return success(
        message="登录成功",
        token=token,
        user=UserInfo.model_validate(user).model_dump(mode="json"),
    )


@router.post("/register", status_code=201)
async def register(data: UserRegister, response: Response, db: AsyncSession = Depends(get_db)):
    """用户注册（默认角色 user，状态 active）"""
    password = resolve_password(data)
    if not password:
        raise AuthException(ErrorCode.PASSWORD_REQUIRED)
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationException(f"密码长度至少为 {PASSWORD_MIN_LENGTH} 位")

    repo = UserRepository(db)
    if await repo.get_by_username(data.username):
        raise ConflictException("用户名已存在", code=ErrorCode.ACCOUNT_EXISTS)
    if await repo.get_by_email(data.email):
        raise ConflictException("邮箱已被注册", code=ErrorCode.ACCOUNT_EXISTS)

    user = await repo.create(User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(password),
        role=ROLE_USER,
        status=USER_STATUS_ACTIVE,
    ))
    await commit(db, "注册用户")

    token = issue_token(user)
    set_auth_cookie(response, token)
    event_bus.emit(Events.USER_REGISTER, "auth", {"user_id": user.id})
    logger.info(f"新用户注册: {user.username}")

    return success(
        message="注册成功",
        token=token,
        user=UserInfo.model_validate(user).model_dump(mode="json"),
    )


@router.post("/logout")
async def logout(response: Response, user: Optional[TokenData] = Depends(get_optional_user)):
    """退出登录（清除认证 Cookie）"""
    response.delete_cookie(get_settings().auth_cookie_name, path="/")
    if user:
        event_bus.emit(Events.USER_LOGOUT, "auth", {"user_id": user.user_id})
    return success(message="退出登录成功")
