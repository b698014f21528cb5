"""
会话级加密
登录/注册时前端用会话公钥加密密码，后端用 ECDH(P-256) + AES-GCM 解密

流程：
1. 前端请求 /api/crypto/public-key，获得 session_id 与服务端公钥（JWK）
2. 前端生成临时密钥对，与服务端公钥协商出共享密钥，AES-GCM 加密密码
3. 提交 encrypted_password + session_id + client_public_key（PEM）
"""

import base64
import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import get_settings
from .errors import SessionException, AuthException, ErrorCode

logger = logging.getLogger(__name__)

NONCE_SIZE = 12


def _b64url(value: int) -> str:
    """P-256 坐标固定 32 字节，base64url 无填充"""
    return base64.urlsafe_b64encode(value.to_bytes(32, "big")).rstrip(b"=").decode("ascii")


@dataclass
class CryptoSession:
    """单个加密会话"""
    session_id: str
    private_key: ec.EllipticCurvePrivateKey
    expires_at: datetime
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def public_jwk(self) -> dict:
        numbers = self.private_key.public_key().public_numbers()
        return {
            "kty": "EC",
            "crv": "P-256",
            "x": _b64url(numbers.x),
            "y": _b64url(numbers.y),
        }


class CryptoSessionManager:
    """加密会话管理器（进程内，带过期清理）"""

    def __init__(self, ttl_seconds: Optional[int] = None):
        self._sessions: Dict[str, CryptoSession] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds

    @property
    def ttl(self) -> int:
        return self._ttl if self._ttl is not None else get_settings().crypto_session_ttl

    def create_session(self) -> CryptoSession:
        """生成新的会话密钥对"""
        session = CryptoSession(
            session_id=f"session_{secrets.token_hex(16)}",
            private_key=ec.generate_private_key(ec.SECP256R1()),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=self.ttl),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.debug(f"创建加密会话: {session.session_id}")
        return session

    def get_session(self, session_id: str) -> CryptoSession:
        """获取有效会话，不存在或过期时抛出异常"""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionException(ErrorCode.SESSION_NOT_FOUND)
            if session.is_expired():
                del self._sessions[session_id]
                raise SessionException(ErrorCode.SESSION_EXPIRED)
            return session

    def decrypt(self, session_id: str, client_public_key_pem: str, encrypted_b64: str) -> str:
        """
        解密前端提交的数据

        Args:
            session_id: 会话 ID
            client_public_key_pem: 前端临时公钥（PEM）
            encrypted_b64: base64(nonce[12] + 密文 + tag)
        """
        session = self.get_session(session_id)
        try:
            client_key = serialization.load_pem_public_key(client_public_key_pem.encode("utf-8"))
            if not isinstance(client_key, ec.EllipticCurvePublicKey):
                raise ValueError("客户端公钥不是 EC 公钥")
            shared_secret = session.private_key.exchange(ec.ECDH(), client_key)[:32]
            payload = base64.b64decode(encrypted_b64)
            if len(payload) <= NONCE_SIZE:
                raise ValueError("密文长度不足")
            plaintext = AESGCM(shared_secret).decrypt(payload[:NONCE_SIZE], payload[NONCE_SIZE:], None)
            return plaintext.decode("utf-8")
        except (ValueError, TypeError, InvalidTag) as e:
            logger.warning(f"会话 {session_id} 解密失败: {e}")
            raise AuthException(ErrorCode.DECRYPT_FAILED) from e

    def remove(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)

    def sweep(self) -> int:
        """清理过期会话，返回清理数量"""
        now = datetime.now(timezone.utc)
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.debug(f"清理过期加密会话 {len(expired)} 个")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


# 全局会话管理器
crypto_sessions = CryptoSessionManager()


async def sweep_expired_sessions():
    """定期任务：清理过期加密会话"""
    crypto_sessions.sweep()
