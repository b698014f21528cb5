"""
数据访问基础
所有持久化读写都经由仓储方法完成，每次查询都有超时限制，
底层异常统一包装为 DatabaseException
"""

import asyncio
import logging
from typing import Any, Optional

from sqlalchemy import select, func, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .errors import DatabaseException

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    仓储基类

    写操作只 flush 不 commit，事务边界由服务层决定
    """

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout if timeout is not None else get_settings().db_query_timeout

    async def _run(self, awaitable, action: str) -> Any:
        """在超时限制内执行数据库操作"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"数据库操作超时（{self.timeout}s）: {action}")
            raise DatabaseException(f"{action}超时", cause=e) from e
        except SQLAlchemyError as e:
            logger.error(f"数据库操作失败: {action}: {e}")
            raise DatabaseException(f"{action}失败", cause=e) from e

    async def execute(self, stmt, action: str = "数据库查询"):
        return await self._run(self.db.execute(stmt), action)

    async def scalar(self, stmt, action: str = "数据库查询") -> Any:
        result = await self.execute(stmt, action)
        return result.scalar()

    async def one_or_none(self, stmt, action: str = "数据库查询") -> Any:
        result = await self.execute(stmt, action)
        return result.scalar_one_or_none()

    async def all(self, stmt, action: str = "数据库查询") -> list:
        result = await self.execute(stmt, action)
        return list(result.scalars().all())

    async def add(self, obj, action: str = "保存记录"):
        """新增并刷新到数据库，返回带主键的对象"""
        self.db.add(obj)
        await self._run(self.db.flush(), action)
        return obj

    async def flush(self, action: str = "更新记录"):
        await self._run(self.db.flush(), action)


async def commit(db: AsyncSession, action: str = "提交事务"):
    """提交事务，失败时回滚并包装为 DatabaseException"""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"事务提交失败: {action}: {e}")
        raise DatabaseException(f"{action}失败", cause=e) from e


# ==================== 用户 ====================

from models.account import User  # noqa: E402

# 允许部分更新的用户字段
USER_PARTIAL_FIELDS = ("username", "password", "email", "role", "status")


class UserRepository(BaseRepository):
    """用户仓储"""

    async def create(self, user: User) -> User:
        return await self.add(user, "创建用户")

    async def get_by_id(self, user_id: int) -> Optional[User]:
        return await self.one_or_none(select(User).where(User.id == user_id), "获取用户")

    async def get_by_username(self, username: str) -> Optional[User]:
        return await self.one_or_none(select(User).where(User.username == username), "获取用户")

    async def get_by_email(self, email: str) -> Optional[User]:
        return await self.one_or_none(select(User).where(User.email == email), "获取用户")

    async def get_all(self, limit: int = 20, offset: int = 0) -> list[User]:
        stmt = select(User).order_by(User.id).offset(offset).limit(limit)
        return await self.all(stmt, "获取用户列表")

    async def count(self) -> int:
        return await self.scalar(select(func.count(User.id)), "统计用户") or 0

    async def update(self, user: User) -> User:
        await self.flush("更新用户")
        return user

    async def update_partial(self, user: User, fields: dict) -> User:
        """
        部分更新

        只接受 username/password/email/role/status，其余字段忽略；
        password 需由调用方先行哈希，写入 password_hash
        """
        for key in USER_PARTIAL_FIELDS:
            if key not in fields:
                continue
            if key == "password":
                user.password_hash = fields[key]
            else:
                setattr(user, key, fields[key])
        await self.flush("更新用户")
        return user

    async def delete(self, user_id: int) -> bool:
        result = await self.execute(delete(User).where(User.id == user_id), "删除用户")
        return result.rowcount > 0
