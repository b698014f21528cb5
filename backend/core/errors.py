"""
标准错误码体系
提供统一的错误码定义和异常处理
"""

from typing import Optional, Any, Dict
from enum import IntEnum
from fastapi import status
from fastapi.responses import JSONResponse


class ErrorCode(IntEnum):
    """
    标准错误码

    错误码规范：
    - 0: 成功
    - 1xxx: 系统级错误
    - 2xxx: 认证/授权错误
    - 3xxx: 业务通用错误
    - 4xxx: 文章模块错误
    """

    # ==================== 成功 ====================
    SUCCESS = 0

    # ==================== 系统级错误 (1xxx) ====================
    INTERNAL_ERROR = 1000           # 服务器内部错误
    DATABASE_ERROR = 1001           # 数据库错误
    FILE_SYSTEM_ERROR = 1007        # 文件系统错误
    MARKDOWN_ERROR = 1009           # Markdown 转换失败

    # ==================== 认证/授权错误 (2xxx) ====================
    UNAUTHORIZED = 2001             # 未认证（未登录）
    TOKEN_INVALID = 2003            # 令牌无效
    PERMISSION_DENIED = 2004        # 权限不足
    USER_INACTIVE = 2005            # 账户未激活/已封禁
    PASSWORD_INCORRECT = 2008       # 用户名或密码错误
    ACCOUNT_NOT_FOUND = 2009        # 账户不存在
    ACCOUNT_EXISTS = 2010           # 账户已存在
    SESSION_EXPIRED = 2011          # 加密会话过期
    SESSION_NOT_FOUND = 2013        # 加密会话不存在
    PASSWORD_REQUIRED = 2014        # 未提供密码
    DECRYPT_FAILED = 2015           # 密码解密失败

    # ==================== 业务通用错误 (3xxx) ====================
    VALIDATION_ERROR = 3001         # 参数验证失败
    RESOURCE_NOT_FOUND = 3002       # 资源不存在
    RESOURCE_EXISTS = 3003          # 资源已存在
    RESOURCE_CONFLICT = 3004        # 资源冲突

    # ==================== 文章模块错误 (4xxx) ====================
    PASSAGE_NOT_FOUND = 4001
    PASSAGE_ACCESS_DENIED = 4002
    CATEGORY_NOT_FOUND = 4003
    TAG_NOT_FOUND = 4004


# 错误码对应的默认消息
ERROR_MESSAGES: Dict[int, str] = {
    ErrorCode.SUCCESS: "操作成功",

    # 系统级
    ErrorCode.INTERNAL_ERROR: "服务器内部错误，请稍后重试",
    ErrorCode.DATABASE_ERROR: "数据库操作失败",
    ErrorCode.FILE_SYSTEM_ERROR: "文件系统错误",
    ErrorCode.MARKDOWN_ERROR: "Markdown转换失败",

    # 认证/授权
    ErrorCode.UNAUTHORIZED: "请先登录",
    ErrorCode.TOKEN_INVALID: "无效的认证凭据",
    ErrorCode.PERMISSION_DENIED: "没有权限执行此操作",
    ErrorCode.USER_INACTIVE: "账户已被禁用",
    ErrorCode.PASSWORD_INCORRECT: "用户名或密码错误",
    ErrorCode.ACCOUNT_NOT_FOUND: "用户不存在",
    ErrorCode.ACCOUNT_EXISTS: "用户已存在",
    ErrorCode.SESSION_EXPIRED: "加密会话已过期，请刷新页面",
    ErrorCode.SESSION_NOT_FOUND: "加密会话不存在",
    ErrorCode.PASSWORD_REQUIRED: "请输入密码",
    ErrorCode.DECRYPT_FAILED: "密码解密失败",

    # 业务通用
    ErrorCode.VALIDATION_ERROR: "参数验证失败",
    ErrorCode.RESOURCE_NOT_FOUND: "请求的资源不存在",
    ErrorCode.RESOURCE_EXISTS: "资源已存在",
    ErrorCode.RESOURCE_CONFLICT: "资源冲突",

    # 文章模块
    ErrorCode.PASSAGE_NOT_FOUND: "文章不存在",
    ErrorCode.PASSAGE_ACCESS_DENIED: "无权访问此文章",
    ErrorCode.CATEGORY_NOT_FOUND: "分类不存在",
    ErrorCode.TAG_NOT_FOUND: "标签不存在",
}

# 错误码对应的 HTTP 状态码
ERROR_HTTP_STATUS: Dict[int, int] = {
    ErrorCode.SUCCESS: status.HTTP_200_OK,

    # 系统级 -> 500
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.DATABASE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.FILE_SYSTEM_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.MARKDOWN_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,

    # 认证/授权 -> 400/401/403/409
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.TOKEN_INVALID: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.USER_INACTIVE: status.HTTP_403_FORBIDDEN,
    ErrorCode.PASSWORD_INCORRECT: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.ACCOUNT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ACCOUNT_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.SESSION_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.SESSION_NOT_FOUND: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.PASSWORD_REQUIRED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.DECRYPT_FAILED: status.HTTP_400_BAD_REQUEST,

    # 业务通用 -> 400/404/409
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.RESOURCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESOURCE_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.RESOURCE_CONFLICT: status.HTTP_409_CONFLICT,

    # 文章模块
    ErrorCode.PASSAGE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PASSAGE_ACCESS_DENIED: status.HTTP_423_LOCKED,
    ErrorCode.CATEGORY_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TAG_NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


class AppException(Exception):
    """
    应用异常基类

    用于抛出业务异常，包含错误码和详细信息

    Usage:
        raise AppException(ErrorCode.PASSAGE_NOT_FOUND)
        raise AppException(ErrorCode.VALIDATION_ERROR, data={"field": "email", "error": "格式不正确"})
    """

    def __init__(
        self,
        code: int = ErrorCode.INTERNAL_ERROR,
        message: Optional[str] = None,
        data: Any = None
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "未知错误")
        self.data = data
        self.http_status = ERROR_HTTP_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        """转换为 JSONResponse"""
        return JSONResponse(
            status_code=self.http_status,
            content=self.to_dict()
        )

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            "success": False,
            "code": int(self.code),
            "message": self.message,
            "data": self.data
        }


class ValidationException(AppException):
    """参数验证异常"""

    def __init__(self, message: str = "参数验证失败", errors: Optional[list] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            data={"errors": errors} if errors else None
        )


class AuthException(AppException):
    """认证异常"""

    def __init__(
        self,
        code: int = ErrorCode.UNAUTHORIZED,
        message: Optional[str] = None
    ):
        super().__init__(code=code, message=message)


class NotFoundException(AppException):
    """资源不存在异常"""

    def __init__(
        self,
        resource: str = "资源",
        resource_id: Any = None,
        code: int = ErrorCode.RESOURCE_NOT_FOUND
    ):
        message = f"{resource}不存在"
        if resource_id:
            message = f"{resource} (ID: {resource_id}) 不存在"
        super().__init__(code=code, message=message)


class PermissionException(AppException):
    """权限异常"""

    def __init__(self, message: str = "没有权限执行此操作"):
        super().__init__(
            code=ErrorCode.PERMISSION_DENIED,
            message=message
        )


class ConflictException(AppException):
    """资源冲突（重复用户名、邮箱等）"""

    def __init__(self, message: str = "资源已存在", code: int = ErrorCode.RESOURCE_EXISTS):
        super().__init__(code=code, message=message)


class DatabaseException(AppException):
    """数据库异常，保留底层原因用于日志"""

    def __init__(self, message: str = "数据库操作失败", cause: Optional[BaseException] = None):
        super().__init__(code=ErrorCode.DATABASE_ERROR, message=message)
        self.cause = cause


class FileSystemException(AppException):
    """Markdown 文件读写异常"""

    def __init__(self, message: str = "文件系统错误", cause: Optional[BaseException] = None):
        super().__init__(code=ErrorCode.FILE_SYSTEM_ERROR, message=message)
        self.cause = cause


class MarkdownException(AppException):
    """Markdown 转换异常"""

    def __init__(self, message: str = "Markdown转换失败", cause: Optional[BaseException] = None):
        super().__init__(code=ErrorCode.MARKDOWN_ERROR, message=message)
        self.cause = cause


class SessionException(AppException):
    """加密会话异常（不存在或已过期）"""

    def __init__(self, code: int = ErrorCode.SESSION_NOT_FOUND, message: Optional[str] = None):
        super().__init__(code=code, message=message)


# ==================== 异常处理器 ====================

async def app_exception_handler(request, exc: AppException):
    """AppException 异常处理器"""
    return exc.to_response()


def register_exception_handlers(app):
    """
    注册异常处理器

    在 main.py 中调用：
        from core.errors import register_exception_handlers
        register_exception_handlers(app)
    """
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException

    app.add_exception_handler(AppException, app_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"]
            })

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "code": int(ErrorCode.VALIDATION_ERROR),
                "message": "参数验证失败",
                "data": {"errors": errors}
            }
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request, exc: StarletteHTTPException):
        # 映射 HTTP 状态码到业务错误码
        code_mapping = {
            400: ErrorCode.VALIDATION_ERROR,
            401: ErrorCode.UNAUTHORIZED,
            403: ErrorCode.PERMISSION_DENIED,
            404: ErrorCode.RESOURCE_NOT_FOUND,
            409: ErrorCode.RESOURCE_CONFLICT,
            500: ErrorCode.INTERNAL_ERROR,
        }

        code = code_mapping.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
        message = str(exc.detail) if exc.detail else ERROR_MESSAGES.get(code, "请求失败")

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "code": int(code),
                "message": message,
                "data": None
            },
            headers=getattr(exc, "headers", None)
        )


# ==================== 响应构建器 ====================

def error_response(
    code: int = ErrorCode.INTERNAL_ERROR,
    message: Optional[str] = None,
    data: Any = None
) -> dict:
    """构建错误响应"""
    return {
        "success": False,
        "code": int(code),
        "message": message or ERROR_MESSAGES.get(code, "操作失败"),
        "data": data
    }
