"""
核心模块
提供应用的基础设施和通用功能

导出列表：
- 配置管理: get_settings, Settings
- 数据库: Base, get_db, async_session
- 安全认证: get_current_user, get_optional_user, require_role, require_admin
- 事件系统: event_bus, Events, Event
- 错误处理: ErrorCode, AppException, register_exception_handlers
"""

# 配置管理
from .config import get_settings, Settings, reload_settings

# 数据库
from .database import Base, get_db, get_db_session, async_session, init_db, close_db

# 安全认证
from .security import (
    get_current_user,
    get_optional_user,
    require_role,
    require_admin,
    create_token,
    decode_token,
    hash_password,
    verify_password,
    has_role,
    TokenData
)

# 事件系统
from .events import event_bus, Events, Event, EventBus

# 错误处理
from .errors import (
    ErrorCode,
    AppException,
    ValidationException,
    AuthException,
    NotFoundException,
    PermissionException,
    ConflictException,
    error_response,
    register_exception_handlers
)


__all__ = [
    # 配置
    "get_settings",
    "Settings",
    "reload_settings",

    # 数据库
    "Base",
    "get_db",
    "get_db_session",
    "async_session",
    "init_db",
    "close_db",

    # 安全
    "get_current_user",
    "get_optional_user",
    "require_role",
    "require_admin",
    "create_token",
    "decode_token",
    "hash_password",
    "verify_password",
    "has_role",
    "TokenData",

    # 事件
    "event_bus",
    "Events",
    "Event",
    "EventBus",

    # 错误
    "ErrorCode",
    "AppException",
    "ValidationException",
    "AuthException",
    "NotFoundException",
    "PermissionException",
    "ConflictException",
    "error_response",
    "register_exception_handlers",
]
