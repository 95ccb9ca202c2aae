"""
Схемы данных OCR Gateway.

Включает:
    - Pydantic модели ответов API (статус, health, документация, OCR, журнал)
    - Конверт ошибки для единого обработчика ошибок
    - Внутренний dataclass записи журнала для хранилища

Поля, которые клиенты исторически читают в camelCase, объявлены
через alias; FastAPI сериализует ответы по alias.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Pydantic модели для API
# =============================================================================


class ServiceInfo(BaseModel):
    """
    Ответ GET / — статус сервиса и каталог эндпоинтов.

    Attributes:
        message: приветственное сообщение
        version: версия API
        runtime_version: версия интерпретатора (на проводе — nodeVersion)
        timestamp: время ответа в ISO 8601
        environment: окружение развёртывания
        test_page: путь к тестовой странице
        database: дескриптор хранилища журнала
        endpoints: каталог эндпоинтов
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str
    version: str
    runtime_version: str = Field(alias="nodeVersion")
    timestamp: str
    environment: str
    test_page: str = Field(alias="testPage")
    database: dict
    endpoints: dict[str, str]


class HealthResponse(BaseModel):
    """Ответ GET /health."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = "healthy"
    uptime: float = Field(description="Время работы процесса в секундах")
    runtime_version: str = Field(alias="nodeVersion")
    timestamp: str


class OCRUsage(BaseModel):
    """Описание вызова POST /ocr в документации."""

    model_config = ConfigDict(populate_by_name=True)

    method: str = "POST"
    url: str = "/ocr"
    content_type: str = Field(default="multipart/form-data", alias="contentType")
    body: str = 'image file in "image" field'
    supported_formats: list[str] = Field(alias="supportedFormats")


class ApiDoc(BaseModel):
    """Ответ GET /api — статическая документация."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    version: str
    runtime_version: str = Field(alias="nodeVersion")
    endpoints: dict[str, str]
    usage: dict[str, OCRUsage]
    database: dict


class FileInfo(BaseModel):
    """
    Информация о загруженном файле.

    Attributes:
        filename: исходное имя файла
        mimetype: заявленный клиентом тип (может отсутствовать)
        size: размер в байтах
    """

    filename: str
    mimetype: Optional[str] = None
    size: int


class OCRResponse(BaseModel):
    """
    Ответ POST /ocr с результатом распознавания.

    Attributes:
        success: успешность операции
        text: распознанный текст
        confidence: средняя уверенность распознавания (0-100)
        words: количество распознанных слов
        language: языки Tesseract, использованные при распознавании
        processing_time_ms: время обработки в мс
        file_info: информация о файле
        log_id: id записи в журнале (None, если журнал недоступен)
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    text: str
    confidence: float = 0.0
    words: int = 0
    language: str
    processing_time_ms: int = Field(alias="processingTimeMs")
    file_info: FileInfo = Field(alias="file")
    log_id: Optional[int] = Field(default=None, alias="logId")


class LogRecord(BaseModel):
    """Одна запись журнала OCR."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    filename: Optional[str] = None
    mimetype: Optional[str] = None
    file_size: Optional[int] = Field(default=None, alias="fileSize")
    extracted_text: Optional[str] = Field(default=None, alias="extractedText")
    confidence: Optional[float] = None
    processing_time_ms: Optional[int] = Field(default=None, alias="processingTimeMs")
    status: str
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    created_at: datetime = Field(alias="createdAt")


class LogsResponse(BaseModel):
    """Ответ GET /logs."""

    success: bool = True
    count: int
    logs: list[LogRecord] = []


class ErrorEnvelope(BaseModel):
    """Тело ответа при ошибке: краткая сводка + детали."""

    error: str
    message: str


class NotFoundEnvelope(ErrorEnvelope):
    """Тело ответа 404 со списком доступных маршрутов."""

    model_config = ConfigDict(populate_by_name=True)

    available_routes: list[str] = Field(alias="availableRoutes")


# =============================================================================
# Внутренние структуры
# =============================================================================


@dataclass
class OCRLogEntry:
    """
    Запись журнала перед сохранением в БД.

    Attributes:
        filename: имя файла
        mimetype: заявленный тип
        file_size: размер в байтах
        status: "success" или "error"
        extracted_text: распознанный текст
        confidence: средняя уверенность
        processing_time_ms: время обработки
        error_message: текст ошибки при status="error"
    """

    filename: str
    mimetype: Optional[str]
    file_size: int
    status: str
    extracted_text: Optional[str] = None
    confidence: Optional[float] = None
    processing_time_ms: Optional[int] = None
    error_message: Optional[str] = None
