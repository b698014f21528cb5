"""
系统引导初始化测试
"""

import pytest
from sqlalchemy import select

from core.bootstrap import init_admin_user
from core.config import get_settings
from core.security import verify_password, ROLE_ADMIN
from models import User


@pytest.fixture
def admin_settings(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "admin_username", "siteadmin")
    monkeypatch.setattr(settings, "admin_password", "Initial@123  # 首次启动后修改")
    monkeypatch.setattr(settings, "admin_email", "siteadmin@example.com")
    return settings


class TestBootstrap:
    """系统引导初始化测试"""

    @pytest.mark.asyncio
    async def test_init_admin_user_success(self, session_factory, admin_settings):
        """测试成功创建管理员用户（密码去掉注释与空白）"""
        result = await init_admin_user()

        assert result["created"] is True
        assert result["username"] == "siteadmin"

        async with session_factory() as session:
            user = (await session.execute(
                select(User).where(User.username == "siteadmin")
            )).scalar_one()
        assert user.role == ROLE_ADMIN
        assert user.status == "active"
        assert verify_password("Initial@123", user.password_hash)

    @pytest.mark.asyncio
    async def test_init_admin_user_exists(self, session_factory, admin_settings):
        """测试管理员已存在时不重复创建"""
        await init_admin_user()
        result = await init_admin_user()

        assert result["created"] is False
        assert "已存在" in result["message"]

        async with session_factory() as session:
            users = (await session.execute(select(User))).scalars().all()
        assert len(users) == 1

    @pytest.mark.asyncio
    async def test_empty_password_skipped(self, session_factory, admin_settings, monkeypatch):
        """测试只有注释的密码视为空"""
        monkeypatch.setattr(admin_settings, "admin_password", "  # 未配置")

        result = await init_admin_user()

        assert result["created"] is False
        async with session_factory() as session:
            assert (await session.execute(select(User))).scalars().first() is None
