"""
Журнал OCR операций в PostgreSQL.

Пул соединений asyncpg с явным жизненным циклом:
    initialize() — создаёт пул и таблицу при старте процесса
    get_info()   — дескриптор хранилища для GET / и GET /api
    close_pool() — корректно закрывает пул при остановке

Если DB_HOST не задан или БД недоступна при старте, сервис
продолжает работать без журнала.
"""

import logging
from typing import Optional

import asyncpg

from gateway.config import DatabaseSettings, db_settings
from gateway.errors import CollaboratorFailure
from gateway.schemas import LogRecord, OCRLogEntry

logger = logging.getLogger(__name__)

# Ошибки драйвера и сети, которые означают сбой хранилища
DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS ocr_logs (
    id SERIAL PRIMARY KEY,
    filename TEXT,
    mimetype TEXT,
    file_size INTEGER,
    extracted_text TEXT,
    confidence REAL,
    processing_time_ms INTEGER,
    status TEXT NOT NULL,
    error_message TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""

INSERT_LOG_SQL = """
INSERT INTO ocr_logs (
    filename, mimetype, file_size, extracted_text, confidence,
    processing_time_ms, status, error_message
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
RETURNING id
"""

SELECT_LOGS_SQL = """
SELECT id, filename, mimetype, file_size, extracted_text, confidence,
       processing_time_ms, status, error_message, created_at
FROM ocr_logs
ORDER BY created_at DESC, id DESC
LIMIT $1
"""


class Database:
    """Пул соединений asyncpg для журнала OCR."""

    def __init__(self, config: DatabaseSettings):
        self._config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._closed = False
        self._last_error: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self._config.host)

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def initialize(self) -> bool:
        """
        Создаёт пул соединений и таблицу журнала.

        Ошибка подключения не прерывает запуск: она пишется в лог,
        и сервис работает без журнала.

        Returns:
            bool: True, если журнал готов к работе
        """
        if self._pool is not None:
            logger.warning("Пул БД уже инициализирован")
            return True

        if not self.enabled:
            logger.warning("DB_HOST не задан: журнал OCR отключён")
            return False

        try:
            self._pool = await asyncpg.create_pool(
                host=self._config.host,
                port=self._config.port,
                database=self._config.name,
                user=self._config.user,
                password=self._config.password.get_secret_value(),
                min_size=self._config.pool_min_size,
                max_size=self._config.pool_max_size,
                timeout=self._config.pool_timeout,
                command_timeout=self._config.command_timeout,
            )
            async with self._pool.acquire() as conn:
                await conn.execute(CREATE_TABLE_SQL)
        except Exception as e:
            self._last_error = str(e)
            logger.error(f"Ошибка инициализации БД: {e}", exc_info=True)
            logger.warning("Сервис продолжит работу без журнала OCR")
            if self._pool is not None:
                await self._pool.close()
                self._pool = None
            return False

        self._closed = False
        self._last_error = None
        logger.info(
            f"Пул БД создан: {self._config.host}:{self._config.port}/{self._config.name} "
            f"(min={self._config.pool_min_size}, max={self._config.pool_max_size})"
        )
        return True

    def get_info(self) -> dict:
        """Дескриптор хранилища журнала."""
        info = {
            "type": "PostgreSQL",
            "enabled": self.enabled,
            "connected": self.connected,
            "host": self._config.host,
            "port": self._config.port,
            "database": self._config.name,
        }
        if self._pool is not None:
            info["pool"] = {
                "size": self._pool.get_size(),
                "idle": self._pool.get_idle_size(),
                "min": self._pool.get_min_size(),
                "max": self._pool.get_max_size(),
            }
        if self._last_error:
            info["error"] = self._last_error
        return info

    async def close_pool(self) -> None:
        """
        Закрывает пул соединений.

        Pool.close() ждёт, пока занятые соединения вернутся в пул,
        поэтому запросы, которые уже работают с БД, успевают завершиться.
        Повторный вызов ничего не делает.
        """
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        logger.info("Закрываем пул соединений БД...")
        await pool.close()
        self._closed = True
        logger.info("Пул БД закрыт")

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            reason = "closed" if self._closed else "not initialized"
            raise CollaboratorFailure(f"Database is {reason}", collaborator="database")
        return self._pool

    async def insert_log(self, entry: OCRLogEntry) -> int:
        """
        Сохраняет запись журнала.

        Returns:
            int: id созданной записи

        Raises:
            CollaboratorFailure: БД недоступна или запрос завершился ошибкой
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchval(
                    INSERT_LOG_SQL,
                    entry.filename,
                    entry.mimetype,
                    entry.file_size,
                    entry.extracted_text,
                    entry.confidence,
                    entry.processing_time_ms,
                    entry.status,
                    entry.error_message,
                )
        except DB_ERRORS as e:
            raise CollaboratorFailure(f"Failed to save OCR log: {e}", collaborator="database") from e

    async def fetch_recent_logs(self, limit: int) -> list[LogRecord]:
        """
        Возвращает последние записи журнала, новые первыми.

        Raises:
            CollaboratorFailure: БД недоступна или запрос завершился ошибкой
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(SELECT_LOGS_SQL, limit)
        except DB_ERRORS as e:
            raise CollaboratorFailure(f"Failed to fetch OCR logs: {e}", collaborator="database") from e

        return [LogRecord(**dict(row)) for row in rows]


# Глобальный экземпляр журнала
database = Database(db_settings)
