"""
Markdown 渲染
CommonMark + GFM（表格、删除线），代码块高亮，video:/ 链接转换为视频播放器
"""

import html
import logging
from pathlib import PurePosixPath

from markdown_it import MarkdownIt
from markdown_it.token import Token
from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from core.errors import MarkdownException

logger = logging.getLogger(__name__)

VIDEO_SCHEME = "video:"
VIDEO_MIME_TYPES = {
    ".webm": "video/webm",
    ".ogg": "video/ogg",
}
DEFAULT_VIDEO_MIME = "video/mp4"
VIDEO_STYLE = "max-width: 100%; border-radius: 8px; box-shadow: 0 4px 12px rgba(0,0,0,0.1);"
VIDEO_FALLBACK_TEXT = "您的浏览器不支持视频播放。"

_formatter = HtmlFormatter(nowrap=True)


def _highlight_code(code: str, lang: str, attrs: str) -> str:
    """代码块高亮；未知语言返回空串，交由默认渲染转义输出"""
    if not lang:
        return ""
    try:
        lexer = get_lexer_by_name(lang, stripall=False)
    except ClassNotFound:
        return ""
    return pygments_highlight(code, lexer, _formatter)


def video_src(href: str) -> str:
    """video:/a.mp4、video://a.mp4 -> /a.mp4"""
    return "/" + href[len(VIDEO_SCHEME):].lstrip("/")


def video_html(href: str) -> str:
    src = video_src(href)
    mime = VIDEO_MIME_TYPES.get(PurePosixPath(src).suffix.lower(), DEFAULT_VIDEO_MIME)
    return (
        f'<video controls style="{VIDEO_STYLE}">'
        f'<source src="{html.escape(src)}" type="{mime}">'
        f"{VIDEO_FALLBACK_TEXT}</video>"
    )


def _video_links(state):
    """把目标为 video:/ 的链接（连同链接文字）替换为 <video> 元素"""
    for block in state.tokens:
        if block.type != "inline" or not block.children:
            continue
        children = []
        in_video = False
        for token in block.children:
            if in_video:
                if token.type == "link_close":
                    in_video = False
                continue
            if token.type == "link_open":
                href = token.attrGet("href") or ""
                if href.startswith(VIDEO_SCHEME):
                    video = Token("html_inline", "", 0)
                    video.content = video_html(href)
                    children.append(video)
                    in_video = True
                    continue
            children.append(token)
        block.children = children


def create_markdown() -> MarkdownIt:
    """渲染器实例：硬换行、允许原始 HTML（只有管理员可写文章）"""
    md = MarkdownIt("commonmark", {"breaks": True, "html": True, "highlight": _highlight_code})
    md.enable(["table", "strikethrough"])
    md.core.ruler.push("video_links", _video_links)
    return md


class MarkdownRenderer:
    """Markdown -> HTML"""

    def __init__(self):
        self._md = create_markdown()

    def convert(self, body: str) -> str:
        try:
            return self._md.render(body or "")
        except Exception as e:
            logger.error(f"Markdown 转换失败: {e}")
            raise MarkdownException(f"Markdown转换失败: {e}", cause=e) from e

    def convert_with_option(self, body: str, show_title: bool = True) -> str:
        """
        转换并可选去掉标题

        show_title 为 False 时，若第一行以 # 开头则删除该行后再转换
        """
        if not show_title and body:
            first, _, rest = body.partition("\n")
            if first.startswith("#"):
                body = rest
        return self.convert(body)


_renderer = MarkdownRenderer()


def get_renderer() -> MarkdownRenderer:
    return _renderer
