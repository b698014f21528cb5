"""
账户数据模型
用户账号表
"""

from datetime import datetime
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from utils.timezone import utc_now

USER_STATUS_ACTIVE = "active"
USER_STATUS_RESTRICTED = "restricted"
USER_STATUS_BANNED = "banned"
USER_STATUSES = (USER_STATUS_ACTIVE, USER_STATUS_RESTRICTED, USER_STATUS_BANNED)


class User(Base):
    """用户表"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(128))
    role: Mapped[str] = mapped_column(String(20), default="user")  # 角色：admin/editor/user
    status: Mapped[str] = mapped_column(String(20), default=USER_STATUS_ACTIVE)  # 状态：active/restricted/banned
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)
