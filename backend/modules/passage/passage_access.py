"""
文章访问判定
纯函数，不做任何 I/O；定时发布只作为提示返回，不会自动修改文章状态
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.errors import ErrorCode, ERROR_HTTP_STATUS
from core.security import ROLE_ADMIN
from utils.timezone import format_utc

from .passage_models import Passage, STATUS_PUBLISHED, STATUS_DELETED, VISIBILITY_PRIVATE

REASON_NOT_PUBLISHED = "not_published"
REASON_PRIVATE = "private"
REASON_NOT_FOUND = "not_found"

DENIAL_MESSAGES = {
    REASON_NOT_PUBLISHED: "文章尚未发布",
    REASON_PRIVATE: "此文章为私密文章，仅管理员可见",
    REASON_NOT_FOUND: "文章不存在",
}


@dataclass
class AccessDecision:
    allowed: bool
    reason: str = ""
    status: str = ""
    visibility: str = ""
    is_scheduled: bool = False
    published_at: Optional[datetime] = None

    @property
    def message(self) -> str:
        return DENIAL_MESSAGES.get(self.reason, "")

    @property
    def http_status(self) -> int:
        return ERROR_HTTP_STATUS[ErrorCode.PASSAGE_ACCESS_DENIED]

    def denial_body(self) -> dict:
        """拒绝访问时返回给调用方的信息（不含正文）"""
        body = {"success": False, "code": int(ErrorCode.PASSAGE_ACCESS_DENIED), "message": self.message}
        if self.status:
            body["status"] = self.status
        if self.visibility:
            body["visibility"] = self.visibility
        if self.is_scheduled and self.published_at:
            body["is_scheduled"] = True
            body["published_at"] = format_utc(self.published_at)
        return body


def evaluate_access(passage: Passage, role: Optional[str]) -> AccessDecision:
    """
    判定调用者能否阅读文章

    Args:
        passage: 文章
        role: 调用者角色，匿名为空字符串或 None

    管理员可以查看任何状态的文章（包括回收站）；
    其他人只能看到已发布且公开的文章
    """
    if role == ROLE_ADMIN:
        return AccessDecision(allowed=True)

    if passage.status == STATUS_DELETED:
        return AccessDecision(allowed=False, reason=REASON_NOT_FOUND)

    if passage.status != STATUS_PUBLISHED:
        return AccessDecision(
            allowed=False,
            reason=REASON_NOT_PUBLISHED,
            status=passage.status,
            visibility=passage.visibility,
            is_scheduled=bool(passage.is_scheduled),
            published_at=passage.published_at,
        )

    if passage.visibility == VISIBILITY_PRIVATE:
        return AccessDecision(
            allowed=False,
            reason=REASON_PRIVATE,
            status=passage.status,
            visibility=passage.visibility,
        )

    return AccessDecision(allowed=True)
