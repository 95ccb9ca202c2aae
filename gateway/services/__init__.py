"""
Внешние сервисы шлюза.

Модули:
    - ocr_processor: распознавание текста через Tesseract
    - database: журнал OCR операций в PostgreSQL
"""

from gateway.services.database import Database, database
from gateway.services.ocr_processor import RecognitionResult, recognize_image

__all__ = [
    "Database",
    "database",
    "RecognitionResult",
    "recognize_image",
]
