"""
统一响应格式
API返回的标准JSON结构
"""

from typing import Any, List


def success(data: Any = None, message: str = "success", **extra) -> dict:
    """
    成功响应

    extra 中的字段与 data 同级输出（如登录接口的 token）
    """
    body = {
        "success": True,
        "code": 0,
        "message": message,
        "data": data
    }
    body.update(extra)
    return body


def paginate(items: List, total: int, page: int, limit: int) -> dict:
    """分页响应：data 为当前页列表，pagination 给出页码、每页条数与总数"""
    return {
        "success": True,
        "code": 0,
        "message": "success",
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total
        }
    }
