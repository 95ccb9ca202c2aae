"""
OCR Gateway — HTTP шлюз распознавания текста на изображениях.

    - Фильтр допуска загружаемых файлов (размер, тип/расширение)
    - Распознавание через Tesseract
    - Журнал операций в PostgreSQL
    - Единый обработчик ошибок и корректная остановка по сигналу
"""

from gateway.config import db_settings, settings
from gateway.errors import CollaboratorFailure, PayloadTooLarge, ShutdownFailure, ValidationFailure

__all__ = [
    "settings",
    "db_settings",
    "ValidationFailure",
    "PayloadTooLarge",
    "CollaboratorFailure",
    "ShutdownFailure",
]
