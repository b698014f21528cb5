"""
用户管理路由
管理员查看、创建、修改、删除用户
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.database import get_db
from core.errors import ValidationException, ConflictException, NotFoundException, ErrorCode
from core.repository import UserRepository, commit
from core.security import require_admin, hash_password, TokenData
from models import User
from schemas import UserAdminCreate, UserPatch, UserInfo, success, paginate

# 无论配置如何，名为 admin 的账户始终受保护
RESERVED_ADMIN_NAME = "admin"

logger = logging.getLogger(__name__)

router = APIRouter(tags=["用户管理"])


def _parse_user_id(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        raise ValidationException("缺少用户ID参数")
    try:
        return int(raw)
    except ValueError:
        raise ValidationException("无效的用户ID")


async def _get_user(repo: UserRepository, user_id: int) -> User:
    user = await repo.get_by_id(user_id)
    if user is None:
        raise NotFoundException("用户", user_id, code=ErrorCode.ACCOUNT_NOT_FOUND)
    return user


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: TokenData = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """获取用户列表"""
    repo = UserRepository(db)
    users = await repo.get_all(limit=limit, offset=(page - 1) * limit)
    total = await repo.count()
    items = [UserInfo.model_validate(u).model_dump(mode="json") for u in users]
    return paginate(items, total, page, limit)


@router.post("/users", status_code=201)
async def create_user(
    data: UserAdminCreate,
    current_user: TokenData = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """创建用户"""
    repo = UserRepository(db)
    if await repo.get_by_username(data.username):
        raise ConflictException("用户名已存在", code=ErrorCode.ACCOUNT_EXISTS)
    if await repo.get_by_email(data.email):
        raise ConflictException("邮箱已被注册", code=ErrorCode.ACCOUNT_EXISTS)

    user = await repo.create(User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        role=data.role,
        status=data.status,
    ))
    await commit(db, "创建用户")
    logger.info(f"管理员 {current_user.username} 创建用户: {user.username}")
    return success(UserInfo.model_validate(user).model_dump(mode="json"), message="用户创建成功")


@router.patch("/users")
async def patch_user(
    data: UserPatch,
    id: Optional[str] = None,
    current_user: TokenData = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """部分更新用户（username/password/email/role/status）"""
    repo = UserRepository(db)
    user = await _get_user(repo, _parse_user_id(id))

    fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if not fields:
        raise ValidationException("没有提供有效的更新字段")

    if "username" in fields and fields["username"] != user.username:
        if await repo.get_by_username(fields["username"]):
            raise ConflictException("用户名已存在", code=ErrorCode.ACCOUNT_EXISTS)
    if "email" in fields and fields["email"] != user.email:
        if await repo.get_by_email(fields["email"]):
            raise ConflictException("邮箱已被注册", code=ErrorCode.ACCOUNT_EXISTS)
    if "password" in fields:
        fields["password"] = hash_password(fields["password"])

    await repo.update_partial(user, fields)
    await commit(db, "更新用户")
    logger.info(f"管理员 {current_user.username} 更新用户 {user.id}: {sorted(fields)}")
    return success(UserInfo.model_validate(user).model_dump(mode="json"), message="用户更新成功")


@router.delete("/users")
async def delete_user(
    id: Optional[str] = None,
    current_user: TokenData = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """删除用户（内置管理员账户不可删除）"""
    repo = UserRepository(db)
    user = await _get_user(repo, _parse_user_id(id))
    if user.username in (RESERVED_ADMIN_NAME, get_settings().admin_username):
        raise ValidationException("不能删除管理员账户")

    await repo.delete(user.id)
    await commit(db, "删除用户")
    logger.info(f"管理员 {current_user.username} 删除用户: {user.username}")
    return success(message="用户删除成功")
