"""
OCR Gateway — HTTP шлюз распознавания текста на изображениях.

Принимает изображение, пропускает его через фильтр допуска,
распознаёт текст (Tesseract) и пишет запись в журнал (PostgreSQL).

Эндпоинты:
    GET  /        — статус сервиса и каталог эндпоинтов
    GET  /health  — проверка работоспособности
    GET  /api     — документация API
    POST /ocr     — распознавание (multipart/form-data, поле "image")
    GET  /logs    — последние записи журнала OCR
    GET  /static/index.html — тестовая страница

Запуск:
    python -m gateway.main
"""

import asyncio
import logging
import platform
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.admission import ALLOWED_EXTENSIONS, UploadedFile, admitted_image
from gateway.config import settings
from gateway.error_handlers import (
    error_boundary_middleware,
    handle_http_error,
    handle_validation_error,
    not_found_response,
)
from gateway.handlers import handle_logs, handle_ocr
from gateway.lifecycle import serve
from gateway.middleware import UploadSizeLimitMiddleware, timing_middleware
from gateway.schemas import ApiDoc, HealthResponse, LogsResponse, OCRResponse, OCRUsage, ServiceInfo
from gateway.services.database import database

# Настройка логгера
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [OCR-Gateway] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

API_NAME = "OCR Gateway API"
API_VERSION = "2.0.0"
RUNTIME_VERSION = platform.python_version()
TEST_PAGE = "/static/index.html"

# Форматы в документации: растровые, которые понимает Tesseract
SUPPORTED_FORMATS = sorted(ALLOWED_EXTENSIONS - {"svg"})

SERVICE_ENDPOINTS = {
    "GET /": "API status",
    "GET /health": "Health check",
    "GET /api": "API documentation",
    "POST /ocr": "OCR processing",
    "GET /logs": "View OCR logs",
    f"GET {TEST_PAGE}": "Test page",
}

API_ENDPOINTS = {
    "GET /": "API status and info",
    "GET /health": "Health check",
    "GET /api": "API documentation",
    "POST /ocr": 'Upload image for OCR processing (multipart/form-data with "image" field)',
    "GET /logs": "View recent OCR processing logs",
}

_started_monotonic = time.monotonic()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Подключение журнала при старте и его закрытие при остановке."""
    await database.initialize()

    logger.info(f"OCR Gateway запущен на порту {settings.port}")
    logger.info(f"Окружение: {settings.environment}")
    logger.info(f"Python: {RUNTIME_VERSION}")
    logger.info(f"Время старта: {_now_iso()}")
    logger.info("Эндпоинты:")
    for route, description in API_ENDPOINTS.items():
        logger.info(f"   {route} - {description}")

    yield

    # Если остановку провёл ShutdownCoordinator, пул уже закрыт
    await database.close_pool()


# FastAPI приложение
app = FastAPI(
    title=API_NAME,
    description="HTTP шлюз распознавания текста на изображениях (Tesseract OCR)",
    version=API_VERSION,
    lifespan=lifespan,
    # Служебные страницы FastAPI не входят в публичную таблицу маршрутов
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# Middleware: последний добавленный будет внешним
app.add_middleware(UploadSizeLimitMiddleware)
app.middleware("http")(error_boundary_middleware)
app.middleware("http")(timing_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RequestValidationError, handle_validation_error)
app.add_exception_handler(StarletteHTTPException, handle_http_error)


@app.get("/", response_model=ServiceInfo)
async def service_info() -> ServiceInfo:
    """Статус сервиса, состояние журнала и каталог эндпоинтов."""
    return ServiceInfo(
        message=f"{API_NAME} is running!",
        version=API_VERSION,
        runtime_version=RUNTIME_VERSION,
        timestamp=_now_iso(),
        environment=settings.environment,
        test_page=TEST_PAGE,
        database=database.get_info(),
        endpoints=SERVICE_ENDPOINTS,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Процесс жив. Всегда 200."""
    return HealthResponse(
        status="healthy",
        uptime=time.monotonic() - _started_monotonic,
        runtime_version=RUNTIME_VERSION,
        timestamp=_now_iso(),
    )


@app.get("/api", response_model=ApiDoc)
async def api_doc() -> ApiDoc:
    """Документация API."""
    return ApiDoc(
        name=API_NAME,
        version=API_VERSION,
        runtime_version=RUNTIME_VERSION,
        endpoints=API_ENDPOINTS,
        usage={"ocr": OCRUsage(supported_formats=SUPPORTED_FORMATS)},
        database=database.get_info(),
    )


@app.post("/ocr", response_model=OCRResponse)
async def execute_ocr(upload: UploadedFile = Depends(admitted_image)) -> OCRResponse:
    """
    Распознаёт текст на загруженном изображении.

    Файл проходит фильтр допуска в зависимости admitted_image;
    ошибки фильтра и OCR отдаёт единый обработчик ошибок.
    """
    return await handle_ocr(upload)


@app.get("/logs", response_model=LogsResponse)
async def get_logs(limit: int = settings.logs_default_limit) -> LogsResponse:
    """Последние записи журнала OCR."""
    return await handle_logs(limit)


# Тестовая страница
static_dir = Path(settings.static_dir) if settings.static_dir else Path(__file__).parent / "public"
app.mount(
    "/static",
    StaticFiles(directory=static_dir, check_dir=False),
    name="static",
)


# Должен регистрироваться последним: ловит всё, что не совпало выше
@app.api_route(
    "/{full_path:path}",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def route_not_found(request: Request, full_path: str):
    return not_found_response(request)


def run() -> int:
    """Точка входа: запуск сервера до получения SIGINT/SIGTERM."""
    return asyncio.run(
        serve(app, host=settings.host, port=settings.port, drain=database.close_pool)
    )


if __name__ == "__main__":
    sys.exit(run())
