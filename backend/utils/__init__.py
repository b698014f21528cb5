"""
工具函数目录
按功能分类组织
"""

from .text import sanitize_filename, normalize_title, extract_title, strip_html, truncate, make_summary
from .request import get_client_ip, get_user_agent, is_local_ip

__all__ = [
    # 文本处理
    "sanitize_filename",
    "normalize_title",
    "extract_title",
    "strip_html",
    "truncate",
    "make_summary",
    # 请求处理
    "get_client_ip",
    "get_user_agent",
    "is_local_ip",
]
