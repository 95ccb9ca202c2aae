"""
Общие фикстуры тестов.

OCR движок и журнал подменяются фейками, TestClient создаётся без
контекстного менеджера, чтобы lifespan не подключался к настоящей БД.
"""

import itertools
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from gateway import handlers, main
from gateway.errors import CollaboratorFailure
from gateway.schemas import LogRecord
from gateway.services.ocr_processor import RecognitionResult

BOUNDARY = "gateway-test-boundary"


class FakeDatabase:
    """Журнал в памяти с тем же интерфейсом, что у gateway.services.database.Database."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.entries = []
        self.closed = False
        self._ids = itertools.count(1)

    async def initialize(self) -> bool:
        return self.connected

    def get_info(self) -> dict:
        return {"type": "PostgreSQL", "enabled": True, "connected": self.connected}

    async def insert_log(self, entry) -> int:
        log_id = next(self._ids)
        self.entries.append((log_id, entry))
        return log_id

    async def fetch_recent_logs(self, limit: int) -> list[LogRecord]:
        if not self.connected:
            raise CollaboratorFailure("Database is not initialized", collaborator="database")
        records = [
            LogRecord(
                id=log_id,
                filename=entry.filename,
                mimetype=entry.mimetype,
                file_size=entry.file_size,
                extracted_text=entry.extracted_text,
                confidence=entry.confidence,
                processing_time_ms=entry.processing_time_ms,
                status=entry.status,
                error_message=entry.error_message,
                created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            )
            for log_id, entry in reversed(self.entries)
        ]
        return records[:limit]

    async def close_pool(self) -> None:
        self.closed = True
        self.connected = False


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(handlers, "database", db)
    monkeypatch.setattr(main, "database", db)
    return db


@pytest.fixture
def ocr_calls(monkeypatch):
    """Подменяет OCR движок; возвращает список вызовов (размер, языки)."""
    calls = []

    def fake_recognize(image_bytes: bytes, lang: str) -> RecognitionResult:
        calls.append((len(image_bytes), lang))
        return RecognitionResult(text="Hello world", confidence=91.5, words=2, width=10, height=10)

    monkeypatch.setattr(handlers, "recognize_image", fake_recognize)
    return calls


@pytest.fixture
def client(fake_db, ocr_calls):
    return TestClient(main.app)


def build_multipart(filename: str, data: bytes, content_type=None, field: str = "image"):
    """
    Собирает multipart тело вручную.

    httpx всегда подставляет Content-Type части по имени файла,
    а здесь нужна возможность его не передавать.
    """
    head = (
        f"--{BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="{field}"; filename="{filename}"\r\n'
    )
    if content_type:
        head += f"Content-Type: {content_type}\r\n"
    body = head.encode() + b"\r\n" + data + f"\r\n--{BOUNDARY}--\r\n".encode()
    headers = {"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"}
    return body, headers


@pytest.fixture
def post_image(client):
    """POST /ocr с одним файлом."""

    def _post(filename: str, data: bytes = b"\x89PNG fake", content_type=None, field: str = "image"):
        body, headers = build_multipart(filename, data, content_type=content_type, field=field)
        return client.post("/ocr", content=body, headers=headers)

    return _post


@pytest.fixture
def multipart():
    """build_multipart для тестов, которым нужно отправить тело самим."""
    return build_multipart
