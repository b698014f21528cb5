"""
应用生命周期管理
处理系统启动初始化（数据库、存储目录、管理员、任务）和关闭时的资源清理
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from core.config import get_settings
from core.database import init_db, close_db
from core.bootstrap import init_admin_user
from core.crypto_session import sweep_expired_sessions
from core.events import event_bus, Events, Event
from core.scheduler import get_scheduler
from modules.passage.passage_views import view_recorder
from utils.geoip import reset_geo_locator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理器
    负责应用启动时的初始化任务和关闭时的资源清理
    """
    # -------------------- [启动阶段] --------------------
    current_settings = get_settings()
    logger.info(f"🚀 正在启动 {current_settings.app_name} v{current_settings.app_version}...")

    # 1. 初始化数据库
    await init_db()

    # 2. Markdown 存储目录
    current_settings.markdown_dir.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Markdown 目录: {current_settings.markdown_dir}")

    # 3. 初始化默认管理员
    try:
        admin_result = await init_admin_user()
        if admin_result.get("created"):
            logger.warning(f"⚠️ 已创建默认管理员: {admin_result['username']}（密码请查看 .env 中的 ADMIN_PASSWORD 配置）")
            logger.warning("   请务必尽快登录修改密码！")
    except Exception as e:
        logger.error(f"❌ 初始化管理员失败: {e}")

    # 4. 启动任务调度
    scheduler = get_scheduler()
    scheduler.start()
    await scheduler.schedule_periodic(
        sweep_expired_sessions,
        interval_seconds=current_settings.crypto_session_sweep_interval,
        name="加密会话清理"
    )
    logger.info("✅ 加密会话清理任务已就绪")

    # 5. 发送启动完成事件
    await event_bus.publish(Event(name=Events.SYSTEM_STARTUP, source="kernel"))
    logger.info(f"🎉 {current_settings.app_name} 启动完成! 访问: http://localhost:8000")

    yield

    # -------------------- [关闭阶段] --------------------
    logger.info("🛑 系统正在关闭...")
    await scheduler.stop()
    await view_recorder.drain(timeout=5.0)
    await event_bus.publish(Event(name=Events.SYSTEM_SHUTDOWN, source="kernel"))
    reset_geo_locator()
    await close_db()
    logger.info("👋 系统已安全关闭")
