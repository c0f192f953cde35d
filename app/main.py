"""应用入口：组装业务包的路由、异常处理、中间件与静态资源。"""

from typing import Any

from fastapi import FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.middleware.request_id import RequestIdMiddleware
from app.packages import get_active_package

package = get_active_package()
package.setup_logging()
settings = package.get_settings()
logger = package.logger
create_response = package.create_response

app = FastAPI(title=settings.project_name, description=package.description, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIdMiddleware)


def _jsonable_errors(obj: Any) -> Any:
    """pydantic 错误中可能夹带异常对象或原始字节，转换为可序列化结构。"""
    if isinstance(obj, Exception):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, dict):
        return {key: _jsonable_errors(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable_errors(item) for item in obj]
    return obj


@app.on_event("startup")
async def startup_event() -> None:
    package.init_db()
    logger.info("SUCCESS - %s running at http://127.0.0.1:%s", package.name, settings.app_port)


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request, exc):  # pragma: no cover - framework glue
    return await package.http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def custom_generic_exception_handler(request, exc):  # pragma: no cover - framework glue
    return await package.generic_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):  # pragma: no cover - framework glue
    errors = _jsonable_errors(exc.errors())
    logger.info("Rejected %s %s: %s validation error(s)", request.method, request.url.path, len(errors))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=create_response("请求参数验证失败", errors, status.HTTP_422_UNPROCESSABLE_ENTITY),
    )


@app.get("/health")
async def health_check() -> dict:
    return create_response("OK", {"status": "healthy", "package": package.name})


app.include_router(package.api_router, prefix=settings.api_v1_str)

if package.mount_static is not None:
    package.mount_static(app)
