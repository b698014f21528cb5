"""
文章访问判定测试
"""

from datetime import datetime

import pytest

from modules.passage.passage_access import (
    evaluate_access, REASON_NOT_PUBLISHED, REASON_PRIVATE, REASON_NOT_FOUND,
)
from modules.passage.passage_models import Passage


def make_passage(status="published", visibility="public", is_scheduled=False, published_at=None) -> Passage:
    return Passage(
        id=1, title="t", status=status, visibility=visibility,
        is_scheduled=is_scheduled, published_at=published_at,
    )


class TestDecisionTable:
    """判定表测试"""

    @pytest.mark.parametrize("role", ["", None, "user", "editor", "admin"])
    def test_published_public_allowed(self, role):
        assert evaluate_access(make_passage(), role).allowed is True

    @pytest.mark.parametrize("role", ["", "user", "editor"])
    def test_published_private_denied(self, role):
        decision = evaluate_access(make_passage(visibility="private"), role)
        assert decision.allowed is False
        assert decision.reason == REASON_PRIVATE

    def test_published_private_admin(self):
        assert evaluate_access(make_passage(visibility="private"), "admin").allowed is True

    @pytest.mark.parametrize("status", ["draft", "pending"])
    def test_unpublished_denied(self, status):
        decision = evaluate_access(make_passage(status=status), "user")
        assert decision.allowed is False
        assert decision.reason == REASON_NOT_PUBLISHED
        assert decision.status == status

    @pytest.mark.parametrize("status", ["draft", "pending", "deleted"])
    def test_admin_sees_everything(self, status):
        assert evaluate_access(make_passage(status=status, visibility="private"), "admin").allowed is True

    def test_deleted_looks_missing(self):
        decision = evaluate_access(make_passage(status="deleted"), "")
        assert decision.allowed is False
        assert decision.reason == REASON_NOT_FOUND


class TestScheduled:
    """定时发布提示测试"""

    def test_scheduled_draft_not_promoted(self):
        """到了发布时间也不会自动放行"""
        passage = make_passage(status="draft", is_scheduled=True, published_at=datetime(2000, 1, 1))
        decision = evaluate_access(passage, "")
        assert decision.allowed is False
        assert passage.status == "draft"

    def test_denial_body_scheduled(self):
        passage = make_passage(status="draft", is_scheduled=True, published_at=datetime(2099, 1, 1))
        body = evaluate_access(passage, "").denial_body()

        assert body == {
            "success": False,
            "code": 4002,
            "message": "文章尚未发布",
            "status": "draft",
            "visibility": "public",
            "is_scheduled": True,
            "published_at": "2099-01-01 00:00:00",
        }

    def test_denial_body_without_schedule(self):
        body = evaluate_access(make_passage(status="pending"), "").denial_body()
        assert "is_scheduled" not in body
        assert "content" not in body

    def test_denial_body_private(self):
        body = evaluate_access(make_passage(visibility="private"), "user").denial_body()
        assert body["code"] == 4002
        assert body["visibility"] == "private"
        assert body["message"] == "此文章为私密文章，仅管理员可见"
