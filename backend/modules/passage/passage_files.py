"""
Markdown 文件镜像
markdown/YYYY/MM/DD/<标题>.md 与数据库中的标题、原文保持一致
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import List, Optional
from urllib.parse import unquote

import aiofiles
import aiofiles.os

from core.errors import FileSystemException
from utils.text import sanitize_filename, normalize_title, extract_title
from utils.timezone import utc_now, utc_to_beijing

logger = logging.getLogger(__name__)

MARKDOWN_EXT = ".md"
DIR_MODE = 0o755
COLLISION_SUFFIX_FORMAT = "-%Y%m%d-%H%M%S"


@dataclass
class ParsedMarkdown:
    """解析结果"""
    title: str
    body: str
    mod_time: datetime


def _mtime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, timezone.utc).replace(tzinfo=None)


def render_file_body(title: str, body: str) -> str:
    """文件内容：标题行 + 空行 + 正文"""
    return f"# {title}\n\n{body}"


class MarkdownFileStore:
    """
    Markdown 文件镜像

    所有路径参数均为 markdown 目录下的相对路径（POSIX 分隔符，不含 .md 扩展名）
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    # ==================== 路径 ====================

    @staticmethod
    def path_for(title: str, created_at: datetime) -> str:
        """按创建日期（北京时间）分区：YYYY/MM/DD/<清理后的标题>"""
        local = utc_to_beijing(created_at)
        return f"{local:%Y/%m/%d}/{sanitize_filename(title)}"

    def full_path(self, rel_path: str) -> Path:
        """相对路径 -> 磁盘绝对路径，拒绝越出 markdown 目录"""
        root = self.root.resolve()
        target = (root / f"{rel_path}{MARKDOWN_EXT}").resolve()
        if not target.is_relative_to(root):
            raise FileSystemException(f"非法的文件路径: {rel_path}")
        return target

    def exists(self, rel_path: str) -> bool:
        return self.full_path(rel_path).is_file()

    def unique_path(self, rel_path: str, ignore: Optional[str] = None) -> str:
        """
        路径已被占用时追加 -YYYYMMDD-HHMMSS 后缀，直到不冲突

        ignore 为当前文章自己的路径（重命名到自身时不算冲突）
        """
        if rel_path == ignore or not self.exists(rel_path):
            return rel_path
        stamped = rel_path + utc_to_beijing(utc_now()).strftime(COLLISION_SUFFIX_FORMAT)
        candidate = stamped
        counter = 1
        while candidate != ignore and self.exists(candidate):
            counter += 1
            candidate = f"{stamped}-{counter}"
        return candidate

    def resolve_by_url(self, segment: str) -> Optional[str]:
        """
        URL 路径 -> 文件相对路径

        先尝试精确匹配，未命中时在当天目录下按宽松标题比较
        """
        rel = unquote(segment or "").strip().strip("/")
        if rel.endswith(MARKDOWN_EXT):
            rel = rel[: -len(MARKDOWN_EXT)]
        if not rel:
            return None

        try:
            if self.exists(rel):
                return rel
        except FileSystemException:
            logger.warning(f"拒绝解析越界路径: {segment}")
            return None

        parent = PurePosixPath(rel).parent
        wanted = normalize_title(PurePosixPath(rel).name)
        if not wanted:
            return None
        directory = (self.root / parent).resolve()
        if not directory.is_relative_to(self.root.resolve()) or not directory.is_dir():
            return None
        for entry in sorted(directory.iterdir()):
            if entry.suffix == MARKDOWN_EXT and normalize_title(entry.stem) == wanted:
                return f"{parent}/{entry.stem}"
        return None

    # ==================== 读写 ====================

    async def write(self, rel_path: str, title: str, body: str):
        """写入文件（临时文件 + 替换）"""
        target = self.full_path(rel_path)
        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            await aiofiles.os.makedirs(target.parent, mode=DIR_MODE, exist_ok=True)
            async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                await f.write(render_file_body(title, body))
            await aiofiles.os.replace(tmp, target)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            logger.error(f"写入 Markdown 文件失败 {target}: {e}")
            raise FileSystemException("写入Markdown文件失败", cause=e) from e
        logger.debug(f"已写入 Markdown 文件: {rel_path}")

    async def rename(self, old_path: str, new_path: str) -> str:
        """
        重命名文件，返回最终使用的相对路径

        目标已存在时追加时间后缀；rename 失败时改为先写新文件再删旧文件
        """
        final_path = self.unique_path(new_path, ignore=old_path)
        if final_path == old_path:
            return final_path

        source = self.full_path(old_path)
        target = self.full_path(final_path)
        try:
            await aiofiles.os.makedirs(target.parent, mode=DIR_MODE, exist_ok=True)
            await aiofiles.os.rename(source, target)
            logger.info(f"Markdown 文件已重命名: {old_path} -> {final_path}")
            return final_path
        except OSError as e:
            logger.warning(f"重命名失败，改为复制后删除 {old_path} -> {final_path}: {e}")

        try:
            async with aiofiles.open(source, "r", encoding="utf-8") as f:
                text = await f.read()
            async with aiofiles.open(target, "w", encoding="utf-8") as f:
                await f.write(text)
        except OSError as e:
            raise FileSystemException("重命名Markdown文件失败", cause=e) from e
        # 新文件写入成功后才删除旧文件
        await self.delete(old_path)
        return final_path

    async def delete(self, rel_path: str) -> bool:
        """删除文件，文件不存在不视为错误"""
        target = self.full_path(rel_path)
        try:
            await aiofiles.os.remove(target)
        except FileNotFoundError:
            logger.debug(f"待删除的 Markdown 文件不存在: {rel_path}")
            return False
        except OSError as e:
            raise FileSystemException("删除Markdown文件失败", cause=e) from e
        return True

    async def parse(self, rel_path: str) -> ParsedMarkdown:
        """读取文件：标题取第一行 "# "，正文为完整文件内容"""
        target = self.full_path(rel_path)
        try:
            async with aiofiles.open(target, "r", encoding="utf-8") as f:
                text = await f.read()
            stat = await aiofiles.os.stat(target)
        except OSError as e:
            raise FileSystemException(f"读取Markdown文件失败: {rel_path}", cause=e) from e
        return ParsedMarkdown(
            title=extract_title(text),
            body=text,
            mod_time=_mtime(stat.st_mtime),
        )

    # ==================== 遍历 ====================

    def iter_paths(self) -> List[str]:
        """markdown 目录下所有 .md 文件的相对路径（已排序）"""
        if not self.root.is_dir():
            return []
        paths = []
        for file in self.root.rglob(f"*{MARKDOWN_EXT}"):
            if not file.is_file():
                continue
            rel = file.relative_to(self.root).with_suffix("")
            paths.append(rel.as_posix())
        return sorted(paths)

    def list_files(self) -> List[dict]:
        """文件清单：路径、标题（文件名）、大小、修改时间"""
        files = []
        for rel in self.iter_paths():
            stat = self.full_path(rel).stat()
            files.append({
                "path": rel,
                "title": PurePosixPath(rel).name,
                "size": stat.st_size,
                "modified": _mtime(stat.st_mtime),
            })
        return files

    @staticmethod
    def date_from_path(rel_path: str) -> Optional[datetime]:
        """从 YYYY/MM/DD/ 前缀取日期（北京时间零点），不符合时返回 None"""
        parts = PurePosixPath(rel_path).parts
        if len(parts) < 4:
            return None
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
