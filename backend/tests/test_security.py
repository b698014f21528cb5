"""
安全模块单元测试
"""

import pytest
from datetime import timedelta

from core.security import (
    hash_password,
    verify_password,
    create_token,
    decode_token,
    has_role,
    role_level,
    TokenData
)


class TestPasswordHashing:
    """密码哈希测试"""
    
    def test_hash_password(self):
        """测试密码哈希生成"""
        password = "TestPassword123"
        hashed = hash_password(password)
        
        assert hashed is not None
        assert hashed != password
        assert len(hashed) > 0
    
    def test_hash_password_different_each_time(self):
        """测试每次哈希结果不同（使用随机盐）"""
        password = "TestPassword123"
        hash1 = hash_password(password)
        hash2 = hash_password(password)
        
        # 由于使用随机盐，两次哈希结果应该不同
        assert hash1 != hash2
    
    def test_verify_password_correct(self):
        """测试正确密码验证"""
        password = "TestPassword123"
        hashed = hash_password(password)
        
        assert verify_password(password, hashed) is True
    
    def test_verify_password_incorrect(self):
        """测试错误密码验证"""
        password = "TestPassword123"
        wrong_password = "WrongPassword456"
        hashed = hash_password(password)
        
        assert verify_password(wrong_password, hashed) is False
    
    def test_verify_password_empty(self):
        """测试空密码验证"""
        password = "TestPassword123"
        hashed = hash_password(password)
        
        assert verify_password("", hashed) is False


class TestJWT:
    """JWT 令牌测试"""
    
    def test_create_token(self):
        """测试创建访问令牌"""
        token_data = TokenData(
            user_id=1,
            username="testuser",
            role="user"
        )
        token = create_token(token_data)
        
        assert token is not None
        assert isinstance(token, str)
        assert len(token) > 0
    
    def test_decode_token_valid(self):
        """测试解码有效令牌"""
        token_data = TokenData(
            user_id=1,
            username="testuser",
            role="admin"
        )
        token = create_token(token_data)
        
        decoded = decode_token(token)
        
        assert decoded is not None
        assert decoded.user_id == 1
        assert decoded.username == "testuser"
        assert decoded.role == "admin"
    
    def test_decode_token_invalid(self):
        """测试解码无效令牌"""
        invalid_token = "invalid.token.here"
        
        token_data = decode_token(invalid_token)
        
        assert token_data is None
    
    def test_decode_token_empty(self):
        """测试解码空令牌"""
        token_data = decode_token("")
        
        assert token_data is None
    
    def test_token_contains_user_info(self):
        """测试令牌包含用户信息"""
        user_id = 42
        username = "specialuser"
        role = "editor"
        
        token_data = TokenData(
            user_id=user_id,
            username=username,
            role=role
        )
        token = create_token(token_data)
        
        decoded = decode_token(token)
        
        assert decoded.user_id == user_id
        assert decoded.username == username
        assert decoded.role == role


class TestTokenData:
    """TokenData 数据类测试"""
    
    def test_token_data_creation(self):
        """测试 TokenData 创建"""
        token_data = TokenData(
            user_id=1,
            username="testuser",
            role="user"
        )
        
        assert token_data.user_id == 1
        assert token_data.username == "testuser"
        assert token_data.role == "user"
    
    def test_token_data_default_role(self):
        """测试 TokenData 默认角色"""
        token_data = TokenData(user_id=1, username="testuser")

        assert token_data.role == "user"


class TestTokenExpiry:
    """令牌过期测试"""

    def test_expired_token_rejected(self):
        """过期令牌解码为 None"""
        token = create_token(
            TokenData(user_id=1, username="testuser"),
            expires_delta=timedelta(seconds=-1)
        )

        assert decode_token(token) is None

    def test_tampered_token_rejected(self):
        """签名被篡改的令牌解码为 None"""
        token = create_token(TokenData(user_id=1, username="testuser"))

        assert decode_token(token[:-2] + "xx") is None


class TestPasswordLength:
    """bcrypt 72 字节限制"""

    def test_long_password_truncated_consistently(self):
        """超过 72 字节的部分不参与比较"""
        password = "a" * 72
        hashed = hash_password(password + "tail-1")

        assert verify_password(password + "tail-2", hashed) is True

    def test_verify_against_malformed_hash(self):
        """存储的哈希格式不合法时返回 False"""
        assert verify_password("whatever", "not-a-bcrypt-hash") is False


class TestRoleHierarchy:
    """角色层级测试"""

    def test_role_levels(self):
        assert role_level("user") == 1
        assert role_level("editor") == 2
        assert role_level("admin") == 3
        assert role_level("guest") == 0
        assert role_level(None) == 0

    def test_has_role(self):
        assert has_role("admin", "user") is True
        assert has_role("admin", "admin") is True
        assert has_role("editor", "admin") is False
        assert has_role("user", "editor") is False
        assert has_role("", "user") is False
