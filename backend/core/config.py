"""
系统配置管理
统一管理所有配置项，支持环境变量覆盖
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from typing import Optional
from urllib.parse import quote_plus

# 获取backend目录的绝对路径
BACKEND_DIR = Path(__file__).parent.parent.resolve()
ENV_FILE = BACKEND_DIR / ".env"

DEFAULT_JWT_SECRET = "your-secret-key-change-in-production"


class Settings(BaseSettings):
    """系统配置"""

    # 应用信息
    app_name: str = "Passage Blog"
    app_version: str = "1.0.0"
    debug: bool = False

    # 数据库配置
    database_url: str = ""  # 显式指定时优先使用
    db_driver: str = "sqlite"  # sqlite / mysql
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "passage_blog"
    db_query_timeout: float = 5.0  # 单次查询超时（秒）

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        if self.db_driver == "mysql":
            encoded_user = quote_plus(self.db_user)
            encoded_pwd = quote_plus(self.db_password)
            return f"mysql+aiomysql://{encoded_user}:{encoded_pwd}@{self.db_host}:{self.db_port}/{self.db_name}?charset=utf8mb4"
        return f"sqlite+aiosqlite:///{self.storage_path / 'data' / 'blog.db'}"

    # 文件存储
    storage_root: str = str(BACKEND_DIR)

    @property
    def storage_path(self) -> Path:
        return Path(self.storage_root)

    @property
    def markdown_dir(self) -> Path:
        """Markdown 源文件根目录"""
        return self.storage_path / "markdown"

    # GeoLite2 城市库路径（留空则按默认位置查找）
    geoip_db_path: str = ""

    @property
    def geoip_search_paths(self) -> list[Path]:
        if self.geoip_db_path:
            return [Path(self.geoip_db_path)]
        return [
            self.storage_path / "data" / "GeoLite2-City.mmdb",
            Path("GeoLite2-City.mmdb"),
            Path("/usr/share/GeoIP/GeoLite2-City.mmdb"),
            Path("/var/lib/GeoIP/GeoLite2-City.mmdb"),
        ]

    # 阅读记录
    view_recording_enabled: bool = True

    # JWT令牌配置
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 7天

    # 认证 Cookie
    auth_cookie_name: str = "auth_token"
    auth_cookie_max_age: int = 7 * 24 * 3600

    # 会话级加密（登录密码传输）
    crypto_session_ttl: int = 3600
    crypto_session_sweep_interval: int = 300

    # 默认管理员账户配置（首次启动时创建）
    admin_username: str = "admin"
    admin_password: str = "admin123"  # 首次启动后请立即修改
    admin_email: str = "admin@example.com"

    class Config:
        env_file = str(ENV_FILE)
        env_file_encoding = "utf-8"


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    获取配置单例
    支持运行时重新加载
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()

        # 安全检查: 如果是生产环境且使用默认密钥，发出警告
        if not _settings_instance.debug and _settings_instance.jwt_secret == DEFAULT_JWT_SECRET:
            import logging
            logging.getLogger("core.config").warning(
                "🚨 [安全警告] 您正在生产环境模式下使用默认的 JWT_SECRET！"
                "请立即在 .env 文件中配置 JWT_SECRET。"
            )
    return _settings_instance


def reload_settings():
    """
    重新加载配置
    仅重新加载配置，不清理已签发的Token
    """
    global _settings_instance
    _settings_instance = Settings()
    return _settings_instance
