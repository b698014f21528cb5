"""
Passage Blog - 主入口
基于 FastAPI 的博客文章服务

- 请求日志中间件
- 安全响应头中间件
- 健康检查端点
- 标准化错误处理
"""

import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.errors import register_exception_handlers, error_response, ErrorCode
from core.lifespan import lifespan
from core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# 减少第三方库的日志输出
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("watchfiles.main").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

settings = get_settings()


# ==================== 创建应用 ====================
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Markdown 博客文章服务：访问控制、文件镜像、阅读统计",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# ==================== 中间件配置（顺序重要，后添加的先执行） ====================

# 1. CORS 跨域配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制为具体域名
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"]
)

# 2. 安全响应头中间件
app.add_middleware(SecurityHeadersMiddleware)

# 3. 请求日志中间件
app.add_middleware(
    RequestLoggingMiddleware,
    skip_paths=["/health", "/api/docs", "/api/redoc", "/api/openapi.json"],
    slow_request_threshold=1.0  # 超过1秒的请求记录为慢请求
)


# ==================== 异常处理器 ====================
register_exception_handlers(app)

# 全局未捕获异常处理
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常捕获"""
    logger.error(f"未处理异常: {request.method} {request.url.path} - {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_response(ErrorCode.INTERNAL_ERROR)
    )


# ==================== 注册路由 ====================
from routers import auth, crypto, user
from modules.passage.passage_router import router as passage_router
from modules.passage.passage_admin_router import router as passage_admin_router

# 认证与会话加密
app.include_router(auth.router, prefix="/api")
app.include_router(crypto.router, prefix="/api")

# 文章公开接口
app.include_router(passage_router, prefix="/api", tags=["文章"])

# 后台管理接口
app.include_router(passage_admin_router, prefix="/api/admin", tags=["文章管理"])
app.include_router(user.router, prefix="/api/admin")


# ==================== 根路由 ====================
@app.get("/health", include_in_schema=False)
async def health():
    """健康检查"""
    return {"status": "ok", "version": settings.app_version}


@app.get("/api", include_in_schema=False)
async def api_info():
    """API 信息"""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/api/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
