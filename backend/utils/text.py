"""
文本处理工具
"""

import re

UNTITLED = "未命名文档"

# 文件名中不允许出现的字符
_RESERVED_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_CONTROL_RUN = re.compile(r"[\x00-\x1f\x7f]+")
_HTML_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")

# 阅读速度：每分钟字符数
READ_CHARS_PER_MINUTE = 200


def sanitize_filename(title: str) -> str:
    """
    标题转文件名

    将 / \\ : * ? " < > | 及控制字符替换为下划线并去除首尾空白，结果为空时使用"未命名文档"
    """
    name = _RESERVED_FILENAME_CHARS.sub("_", title or "")
    name = _CONTROL_CHARS.sub("_", name).strip()
    return name or UNTITLED


def clean_title(title: str) -> str:
    """标题中的换行等控制字符替换为空格（连续的只保留一个）"""
    return _CONTROL_RUN.sub(" ", title or "").strip()


def normalize_title(title: str) -> str:
    """宽松比较用：转小写，只保留字母和数字"""
    return _NON_ALNUM.sub("", (title or "").lower())


def extract_title(text: str) -> str:
    """取第一行以 "# " 开头的标题"""
    for line in (text or "").splitlines():
        if line.startswith("# "):
            title = line[2:].strip()
            if title:
                return title
    return UNTITLED


def strip_html(html: str) -> str:
    """去除 HTML 标签并合并空白"""
    text = _HTML_TAG.sub("", html or "")
    return _WHITESPACE.sub(" ", text).strip()


def truncate(text: str, length: int, suffix: str = "...") -> str:
    """
    截取文本

    Args:
        text: 原始文本
        length: 最大长度
        suffix: 省略后缀

    Returns:
        截取后的文本
    """
    if not text or len(text) <= length:
        return text or ""
    return text[:length] + suffix


def make_summary(html: str, length: int = 200) -> str:
    """从渲染后的 HTML 生成纯文本摘要"""
    return truncate(strip_html(html), length)


def calculate_read_time(html: str) -> int:
    """预计阅读时间（分钟）：按纯文本每分钟 200 字计算，至少 1 分钟"""
    chars = len(strip_html(html))
    return max(1, chars // READ_CHARS_PER_MINUTE)
