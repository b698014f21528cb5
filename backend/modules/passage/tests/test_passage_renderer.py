"""
Markdown 渲染测试
"""

import pytest

from core.errors import MarkdownException
from modules.passage.passage_renderer import MarkdownRenderer, video_src, video_html, get_renderer


@pytest.fixture
def renderer() -> MarkdownRenderer:
    return MarkdownRenderer()


class TestConvert:
    """基础渲染测试"""

    def test_paragraph(self, renderer):
        assert "<p>world</p>" in renderer.convert("# Hello\n\nworld")

    def test_hard_line_breaks(self, renderer):
        assert "<br" in renderer.convert("line one\nline two")

    def test_raw_html_allowed(self, renderer):
        assert '<span class="x">hi</span>' in renderer.convert('<span class="x">hi</span>')

    def test_table(self, renderer):
        html = renderer.convert("| a | b |\n|---|---|\n| 1 | 2 |")
        assert "<table>" in html
        assert "<td>1</td>" in html

    def test_strikethrough(self, renderer):
        assert "<s>gone</s>" in renderer.convert("~~gone~~")

    def test_code_highlight(self, renderer):
        html = renderer.convert("```python\ndef f():\n    return 1\n```")
        assert '<span class="k">def</span>' in html

    def test_unknown_language_escaped(self, renderer):
        html = renderer.convert("```nosuchlang\n<b>x</b>\n```")
        assert "&lt;b&gt;x&lt;/b&gt;" in html

    def test_empty(self, renderer):
        assert renderer.convert("") == ""

    def test_failure_wrapped(self, renderer, monkeypatch):
        def broken(body):
            raise RuntimeError("parser exploded")

        monkeypatch.setattr(renderer._md, "render", broken)
        with pytest.raises(MarkdownException) as exc_info:
            renderer.convert("x")
        assert isinstance(exc_info.value.cause, RuntimeError)


class TestShowTitle:
    """标题显示选项测试"""

    def test_keep_title(self, renderer):
        assert "<h1>Hello</h1>" in renderer.convert_with_option("# Hello\n\nworld", True)

    def test_drop_title(self, renderer):
        html = renderer.convert_with_option("# Hello\n\nworld", False)
        assert "<h1>" not in html
        assert "<p>world</p>" in html

    def test_drop_only_heading_line(self, renderer):
        """第一行不是标题时保持原样"""
        html = renderer.convert_with_option("intro\n# Later", False)
        assert "intro" in html
        assert "<h1>Later</h1>" in html


class TestVideoLinks:
    """视频链接测试"""

    @pytest.mark.parametrize("href, expected", [
        ("video:/media/a.mp4", "/media/a.mp4"),
        ("video://media/a.mp4", "/media/a.mp4"),
        ("video:media/a.mp4", "/media/a.mp4"),
    ])
    def test_video_src(self, href, expected):
        assert video_src(href) == expected

    @pytest.mark.parametrize("href, mime", [
        ("video:/a.webm", "video/webm"),
        ("video:/a.OGG", "video/ogg"),
        ("video:/a.mov", "video/mp4"),
    ])
    def test_video_mime(self, href, mime):
        assert f'type="{mime}"' in video_html(href)

    def test_link_replaced(self, renderer):
        html = renderer.convert("看视频 [演示](video://media/demo.webm) 结束")
        assert '<video controls style="' in html
        assert '<source src="/media/demo.webm" type="video/webm">' in html
        assert "演示" not in html
        assert "<a " not in html
        assert "结束" in html

    def test_normal_link_untouched(self, renderer):
        html = renderer.convert("[site](https://example.com)")
        assert '<a href="https://example.com">site</a>' in html

    def test_shared_renderer(self):
        assert get_renderer() is get_renderer()
