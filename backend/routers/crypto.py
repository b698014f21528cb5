"""
会话加密路由
下发一次性的 ECDH 公钥，供登录/注册加密密码
"""

from datetime import datetime, timezone
from fastapi import APIRouter

from core.crypto_session import crypto_sessions
from schemas import success

router = APIRouter(tags=["会话加密"])


@router.get("/crypto/public-key")
async def get_public_key():
    """创建加密会话并返回服务端公钥（JWK）"""
    session = crypto_sessions.create_session()
    expires_in = int((session.expires_at - datetime.now(timezone.utc)).total_seconds())
    return success({
        **session.public_jwk(),
        "session_id": session.session_id,
        "expires_at": session.expires_at.isoformat(),
        "expires_in": max(expires_in, 0),
    })
