"""
Обработчики POST /ocr и GET /logs.

Ошибки OCR движка и БД оборачиваются в CollaboratorFailure и
выбрасываются наружу, ответ формирует единый обработчик ошибок.
"""

import logging
import time

from starlette.concurrency import run_in_threadpool

from gateway.admission import UploadedFile
from gateway.config import settings
from gateway.errors import CollaboratorFailure, GatewayError
from gateway.schemas import FileInfo, LogsResponse, OCRLogEntry, OCRResponse
from gateway.services.database import database
from gateway.services.ocr_processor import recognize_image

logger = logging.getLogger(__name__)


async def handle_ocr(upload: UploadedFile) -> OCRResponse:
    """
    Распознаёт текст на принятом фильтром изображении.

    Движок вызывается ровно один раз. Результат (успех или ошибка)
    пишется в журнал; недоступность журнала не мешает ответу.

    Args:
        upload: файл, прошедший фильтр допуска

    Returns:
        OCRResponse: результат распознавания

    Raises:
        CollaboratorFailure: ошибка OCR движка
    """
    start_time = time.perf_counter()
    file_info = FileInfo(
        filename=upload.filename,
        mimetype=upload.media_type,
        size=upload.size,
    )
    logger.info(f"Получен файл: {upload.filename}, {upload.size} байт")

    # Чтение временного файла блокирующее, уводим его с event loop
    image_bytes = await run_in_threadpool(upload.read)

    try:
        result = await run_in_threadpool(recognize_image, image_bytes, settings.languages)
    except Exception as e:
        processing_time_ms = int((time.perf_counter() - start_time) * 1000)
        logger.exception(f"Ошибка распознавания {upload.filename}: {e}")
        await _save_log(
            OCRLogEntry(
                filename=upload.filename,
                mimetype=upload.media_type,
                file_size=upload.size,
                status="error",
                processing_time_ms=processing_time_ms,
                error_message=str(e),
            )
        )
        raise CollaboratorFailure(f"OCR processing failed: {e}", collaborator="ocr") from e

    processing_time_ms = int((time.perf_counter() - start_time) * 1000)
    log_id = await _save_log(
        OCRLogEntry(
            filename=upload.filename,
            mimetype=upload.media_type,
            file_size=upload.size,
            status="success",
            extracted_text=result.text,
            confidence=result.confidence,
            processing_time_ms=processing_time_ms,
        )
    )

    logger.info(
        f"OCR завершён: {upload.filename}, {result.words} слов за {processing_time_ms}ms"
    )

    return OCRResponse(
        text=result.text,
        confidence=result.confidence,
        words=result.words,
        language=settings.languages,
        processing_time_ms=processing_time_ms,
        file_info=file_info,
        log_id=log_id,
    )


async def handle_logs(limit: int) -> LogsResponse:
    """
    Возвращает последние записи журнала OCR.

    Args:
        limit: сколько записей вернуть (ограничивается logs_max_limit)

    Raises:
        CollaboratorFailure: журнал недоступен
    """
    limit = max(1, min(limit, settings.logs_max_limit))
    records = await database.fetch_recent_logs(limit)
    logger.info(f"Журнал: отдано {len(records)} записей (limit={limit})")
    return LogsResponse(count=len(records), logs=records)


async def _save_log(entry: OCRLogEntry):
    """Сохраняет запись журнала; при ошибке возвращает None."""
    if not database.connected:
        return None
    try:
        return await database.insert_log(entry)
    except GatewayError as e:
        logger.warning(f"Запись журнала не сохранена: {e.message}")
        return None
