"""
中间件配置
"""

import time
import uuid
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from app.core.exceptions import TherapyNotesException, app_exception_to_http_exception
from app.core.logging import api_logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # 生成请求ID
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        start_time = time.time()
        api_logger.info(
            f"Request started - {request.method} {request.url.path} [{request_id}]"
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            api_logger.error(
                f"Request failed - {request.method} {request.url.path} [{request_id}] "
                f"after {process_time:.4f}s: {e}"
            )
            raise

        process_time = time.time() - start_time
        api_logger.info(
            f"Request completed - {request.method} {request.url.path} [{request_id}] "
            f"{response.status_code} in {process_time:.4f}s"
        )

        # 添加响应头
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(round(process_time, 4))

        return response


class ExceptionHandlingMiddleware(BaseHTTPMiddleware):
    """未预期异常的兜底处理"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            api_logger.opt(exception=exc).error(
                f"Unhandled exception on {request.url.path}: {type(exc).__name__}: {exc}"
            )
            return JSONResponse(
                status_code=HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": True,
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": "Internal server error",
                    "request_id": getattr(request.state, "request_id", "unknown")
                }
            )


async def app_exception_handler(request: Request, exc: TherapyNotesException) -> JSONResponse:
    """把应用异常渲染为统一的JSON错误结构"""
    http_exc = app_exception_to_http_exception(exc)
    log = api_logger.warning if http_exc.status_code < 500 else api_logger.error
    log(
        f"{type(exc).__name__} [{exc.code}] on {request.url.path}: {exc.message} "
        f"[{getattr(request.state, 'request_id', 'unknown')}]"
    )
    return JSONResponse(status_code=http_exc.status_code, content=http_exc.detail)
