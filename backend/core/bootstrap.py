"""
系统引导初始化
首次启动时自动创建默认管理员账户
"""

import logging
from sqlalchemy.exc import IntegrityError

from . import database
from .config import get_settings
from .repository import UserRepository
from .security import hash_password, ROLE_ADMIN
from models import User
from models.account import USER_STATUS_ACTIVE

logger = logging.getLogger(__name__)


async def init_admin_user() -> dict:
    """
    初始化默认管理员账户
    仅在不存在同名用户时创建
    """
    settings = get_settings()

    # 清理密码字符串（移除可能的注释和空白字符）
    admin_password = settings.admin_password.split("#")[0].strip()
    if not admin_password:
        logger.error("管理员密码不能为空")
        return {"created": False, "message": "管理员密码不能为空"}

    async with database.get_db_session() as db:
        repo = UserRepository(db)
        existing = await repo.get_by_username(settings.admin_username)
        if existing:
            logger.debug(f"管理员账户已存在: {existing.username}")
            return {"created": False, "message": f"管理员账户已存在: {existing.username}"}

        await repo.create(User(
            username=settings.admin_username,
            email=settings.admin_email,
            password_hash=hash_password(admin_password),
            role=ROLE_ADMIN,
            status=USER_STATUS_ACTIVE,
        ))
        try:
            await db.commit()
        except IntegrityError:
            # 并发启动导致的唯一约束冲突
            await db.rollback()
            logger.info("管理员账户已存在（并发创建），跳过")
            return {"created": False, "message": "管理员账户已存在（并发创建）"}

    logger.info(f"默认管理员账户创建成功: {settings.admin_username}")
    logger.warning("⚠️  正在使用配置中的默认管理员密码，请立即修改！")
    return {
        "created": True,
        "username": settings.admin_username,
        "message": f"默认管理员账户已创建: {settings.admin_username}"
    }
