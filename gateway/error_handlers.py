"""
Единый обработчик ошибок и ответ 404.

Любая ошибка запроса (отказ фильтра допуска, сбой OCR или БД,
непредвиденное исключение) превращается здесь в JSON ответ:
    - отказ с маркером размера -> 400 "File too large"
    - всё остальное -> 500 "Internal server error"

Трассировка пишется в лог, клиент получает только сообщение.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.config import settings
from gateway.errors import GatewayError, ValidationFailure, is_size_exceeded
from gateway.schemas import ErrorEnvelope, NotFoundEnvelope

logger = logging.getLogger(__name__)

AVAILABLE_ROUTES = ["/", "/health", "/api", "POST /ocr", "/logs"]


def build_error_response(request: Request, exc: BaseException) -> JSONResponse:
    """
    Классифицирует ошибку в HTTP статус и тело ответа.

    Args:
        request: запрос, в ходе которого произошла ошибка
        exc: исключение

    Returns:
        JSONResponse: 400 для превышения размера, иначе 500
    """
    if is_size_exceeded(exc):
        logger.warning(f"Отклонён большой файл: {request.method} {request.url.path}")
        envelope = ErrorEnvelope(
            error="File too large",
            message=f"Maximum file size is {settings.max_file_size_mb}MB",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=envelope.model_dump(),
        )

    if isinstance(exc, GatewayError):
        logger.error(
            f"Server Error [{exc.code}] {request.method} {request.url.path}: {exc.message}",
            exc_info=exc,
        )
        message = exc.message
    else:
        logger.error(
            f"Server Error {request.method} {request.url.path}: {exc}",
            exc_info=exc,
        )
        message = str(exc) or type(exc).__name__

    envelope = ErrorEnvelope(error="Internal server error", message=message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=envelope.model_dump(),
    )


def not_found_response(request: Request) -> JSONResponse:
    """Ответ 404 для запроса, не совпавшего ни с одним маршрутом."""
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"

    envelope = NotFoundEnvelope(
        error="Not found",
        message=f"Route {path} not found",
        available_routes=AVAILABLE_ROUTES,
    )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=envelope.model_dump(by_alias=True),
    )


async def error_boundary_middleware(request: Request, call_next):
    """Ловит всё, что выбросили маршруты и зависимости."""
    try:
        return await call_next(request)
    except Exception as exc:
        return build_error_response(request, exc)


async def handle_validation_error(request: Request, exc: RequestValidationError):
    """
    Ошибки разбора запроса FastAPI идут через общий обработчик.

    Клиенту уходит только место и текст первой ошибки; присланное
    значение (поле input) в ответ не попадает.
    """
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid request: {location}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return build_error_response(request, ValidationFailure(message, code="INVALID_REQUEST"))


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    """
    HTTP исключения Starlette.

    404/405 (например, отсутствующий статический файл) отдаются
    как "маршрут не найден", остальные идут через общий обработчик.
    """
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return not_found_response(request)
    # FastAPI заворачивает ошибки чтения тела в HTTPException(400)
    if is_size_exceeded(exc.__cause__):
        return build_error_response(request, exc.__cause__)
    return build_error_response(request, exc)
