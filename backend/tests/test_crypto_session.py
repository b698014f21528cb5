"""
会话级加密单元测试
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.crypto_session import CryptoSessionManager, sweep_expired_sessions, crypto_sessions
from core.errors import AuthException, SessionException, ErrorCode
from tests.test_auth import encrypt_password


def _jwk(session) -> dict:
    return {**session.public_jwk(), "session_id": session.session_id}


class TestCryptoSessionManager:
    """加密会话管理器测试"""

    def test_create_session(self):
        manager = CryptoSessionManager(ttl_seconds=60)
        session = manager.create_session()

        assert session.session_id.startswith("session_")
        assert len(manager) == 1
        assert manager.get_session(session.session_id) is session

    def test_public_jwk_format(self):
        jwk = CryptoSessionManager(ttl_seconds=60).create_session().public_jwk()
        assert jwk["kty"] == "EC"
        assert jwk["crv"] == "P-256"
        # 32 字节 base64url 无填充为 43 个字符
        assert len(jwk["x"]) == 43
        assert len(jwk["y"]) == 43

    def test_decrypt(self):
        manager = CryptoSessionManager(ttl_seconds=60)
        session = manager.create_session()
        payload = encrypt_password(_jwk(session), "密码 Secret@1")

        plaintext = manager.decrypt(
            session.session_id, payload["client_public_key"], payload["encrypted_password"]
        )
        assert plaintext == "密码 Secret@1"

    def test_decrypt_with_wrong_session_key(self):
        """用其他会话的公钥加密的数据无法解密"""
        manager = CryptoSessionManager(ttl_seconds=60)
        first = manager.create_session()
        second = manager.create_session()
        payload = encrypt_password(_jwk(first), "Secret@1")

        with pytest.raises(AuthException) as exc_info:
            manager.decrypt(second.session_id, payload["client_public_key"], payload["encrypted_password"])
        assert exc_info.value.code == ErrorCode.DECRYPT_FAILED
        assert exc_info.value.http_status == 400
        assert exc_info.value.message == "密码解密失败"

    def test_decrypt_bad_public_key(self):
        manager = CryptoSessionManager(ttl_seconds=60)
        session = manager.create_session()

        with pytest.raises(AuthException):
            manager.decrypt(session.session_id, "not a pem", "AAAA")

    def test_unknown_session(self):
        with pytest.raises(SessionException) as exc_info:
            CryptoSessionManager(ttl_seconds=60).get_session("session_missing")
        assert exc_info.value.code == ErrorCode.SESSION_NOT_FOUND

    def test_expired_session_removed(self):
        manager = CryptoSessionManager(ttl_seconds=60)
        session = manager.create_session()
        session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        with pytest.raises(SessionException) as exc_info:
            manager.get_session(session.session_id)
        assert exc_info.value.code == ErrorCode.SESSION_EXPIRED
        assert len(manager) == 0

    def test_remove(self):
        manager = CryptoSessionManager(ttl_seconds=60)
        session = manager.create_session()
        manager.remove(session.session_id)
        manager.remove(session.session_id)
        assert len(manager) == 0

    def test_sweep(self):
        manager = CryptoSessionManager(ttl_seconds=60)
        alive = manager.create_session()
        expired = manager.create_session()
        expired.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        assert manager.sweep() == 1
        assert manager.get_session(alive.session_id) is alive

    @pytest.mark.asyncio
    async def test_sweep_task(self):
        """定期任务清理全局管理器中的过期会话"""
        session = crypto_sessions.create_session()
        session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        await sweep_expired_sessions()

        with pytest.raises(SessionException) as exc_info:
            crypto_sessions.get_session(session.session_id)
        assert exc_info.value.code == ErrorCode.SESSION_NOT_FOUND
