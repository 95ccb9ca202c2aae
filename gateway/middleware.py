"""
Middleware шлюза.

timing_middleware: замер времени обработки запросов
UploadSizeLimitMiddleware: ограничение объёма тела POST /ocr до разбора multipart
"""

import logging
import time

from fastapi import Request
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gateway.config import settings
from gateway.errors import PayloadTooLarge

logger = logging.getLogger(__name__)

# Заголовки частей и boundary сверх самого файла
MULTIPART_OVERHEAD_BYTES = 64 * 1024


async def timing_middleware(request: Request, call_next):
    """Пишет в лог метод, путь, статус и длительность каждого запроса."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.2f}ms)"
    )
    return response


class UploadSizeLimitMiddleware:
    """
    Не даёт multipart парсеру записать на диск больше лимита.

    Фильтр допуска видит размер файла только после того, как тело
    целиком разобрано во временный файл. Здесь тело POST /ocr
    отсекается раньше:
        - Content-Length больше лимита -> PayloadTooLarge сразу,
          тело не читается
        - без Content-Length (chunked) байты считаются по мере
          чтения, PayloadTooLarge при превышении

    Лимит тела = max_file_size_bytes + MULTIPART_OVERHEAD_BYTES.
    Точную проверку размера самого файла по-прежнему делает фильтр допуска.

    Регистрируется внутри error_boundary_middleware, чтобы отказ
    получил тот же ответ 400 "File too large".
    """

    def __init__(self, app: ASGIApp, path: str = "/ocr"):
        self.app = app
        self.path = path

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "POST" or scope["path"] != self.path:
            await self.app(scope, receive, send)
            return

        max_file_bytes = settings.max_file_size_bytes
        max_body_bytes = max_file_bytes + MULTIPART_OVERHEAD_BYTES

        declared = Headers(scope=scope).get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > max_body_bytes:
            logger.info(
                f"Тело {scope['path']} отклонено по Content-Length: {declared} байт "
                f"(лимит {max_body_bytes})"
            )
            raise PayloadTooLarge(int(declared), max_file_bytes)

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > max_body_bytes:
                    logger.info(
                        f"Тело {scope['path']} прервано после {received} байт "
                        f"(лимит {max_body_bytes})"
                    )
                    raise PayloadTooLarge(received, max_file_bytes)
            return message

        await self.app(scope, limited_receive, send)
