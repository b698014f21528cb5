"""
文章公开接口
文章列表、详情、标签、分类、归档
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.security import get_optional_user, TokenData
from schemas import success, paginate
from utils.request import get_client_ip, get_user_agent

from .passage_services import PassageService, passage_detail
from .passage_views import view_recorder

router = APIRouter()


def _role(user: Optional[TokenData]) -> str:
    return user.role if user else ""


async def _detail_response(service: PassageService, decision, passage, request: Request):
    """允许访问时返回详情并异步记录阅读，否则返回 423 与未发布/私密提示"""
    if not decision.allowed:
        return JSONResponse(status_code=decision.http_status, content=decision.denial_body())
    tags = await service.get_tag_names(passage.id)
    view_recorder.submit(passage.id, get_client_ip(request), get_user_agent(request))
    return success(passage_detail(passage, tags))


@router.get("/passages")
async def list_passages(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """获取文章列表（仅已发布且公开）"""
    service = PassageService(db)
    items, total = await service.list_public(page, limit, category=category)
    return paginate(items, total, page, limit)


@router.get("/passages/by-path")
async def get_passage_by_path(
    request: Request,
    path: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """按 YYYY/MM/DD/标题 路径获取文章"""
    service = PassageService(db)
    decision, passage = await service.read_by_path(path, _role(user))
    return await _detail_response(service, decision, passage, request)


@router.get("/passages/{passage_id}")
async def get_passage(
    passage_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """获取文章详情"""
    service = PassageService(db)
    decision, passage = await service.read(passage_id, _role(user))
    return await _detail_response(service, decision, passage, request)


@router.get("/tags")
async def list_tags(db: AsyncSession = Depends(get_db)):
    """获取标签及文章数"""
    return success(await PassageService(db).public_tags())


@router.get("/categories")
async def list_categories(db: AsyncSession = Depends(get_db)):
    """获取文章分类"""
    return success(await PassageService(db).public_categories())


@router.get("/archive")
async def get_archive(db: AsyncSession = Depends(get_db)):
    """按年月归档"""
    return success(await PassageService(db).public_archive())
