"""
HTTP请求工具
"""

import ipaddress

from fastapi import Request

# 不记录阅读的内网/本地网段
_LOCAL_NETWORKS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def strip_port(address: str) -> str:
    """
    去掉地址中的端口

    - "1.2.3.4:8080" -> "1.2.3.4"
    - "[2001:db8::1]:443" -> "2001:db8::1"
    - "2001:db8::1" 保持不变
    """
    address = address.strip()
    if address.startswith("["):
        end = address.find("]")
        return address[1:end] if end > 0 else address
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


def get_client_ip(request: Request) -> str:
    """
    获取客户端真实IP

    支持代理服务器（Nginx等）转发的请求

    Args:
        request: FastAPI请求对象

    Returns:
        客户端IP地址（不含端口）
    """
    # 尝试从代理头获取，取第一个IP（最原始的客户端IP）
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return strip_port(first)

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return strip_port(real_ip)

    # 直接连接，获取socket地址
    if request.client and request.client.host:
        return strip_port(request.client.host)

    return "unknown"


def is_local_ip(ip: str) -> bool:
    """是否为本地/内网地址；无法解析的地址同样视为本地，不做记录"""
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return any(address in network for network in _LOCAL_NETWORKS)


def get_user_agent(request: Request) -> str:
    """获取用户代理"""
    return request.headers.get("User-Agent", "")
