"""
Конфигурация OCR Gateway.

Все значения читаются из переменных окружения (или .env файла).
Для порта и окружения дополнительно поддерживаются общепринятые имена
PORT и APP_ENV, которые выставляет платформа развёртывания.

Документация по параметрам: .env.example
"""

from typing import Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Настройки HTTP шлюза.

    Читает переменные с префиксом OCR_ из .env файла.
    """

    model_config = SettingsConfigDict(
        env_prefix="OCR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Сервер ---
    host: str = "0.0.0.0"
    port: int = Field(
        default=8080,
        validation_alias=AliasChoices("OCR_PORT", "PORT"),
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("OCR_ENVIRONMENT", "APP_ENV"),
    )
    cors_origins: list[str] = ["*"]

    # --- Загрузка файлов ---
    max_file_size_mb: int = 10

    # --- OCR: Tesseract ---
    languages: str = "eng"
    ocr_oem: int = 3
    ocr_psm: int = 3

    # --- Статика (тестовая страница) ---
    # Если не задан, используется каталог public внутри пакета
    static_dir: Optional[str] = None

    # --- Журнал OCR ---
    logs_default_limit: int = 50
    logs_max_limit: int = 500

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class DatabaseSettings(BaseSettings):
    """
    Настройки PostgreSQL для журнала OCR.

    Если DB_HOST не задан, журнал отключён и сервис работает без БД.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: Optional[str] = None
    port: int = 5432
    name: str = "ocr"
    user: str = "postgres"
    password: SecretStr = SecretStr("")

    # Пул соединений
    pool_min_size: int = 1
    pool_max_size: int = 10
    pool_timeout: float = 10.0
    command_timeout: float = 10.0


# Глобальные экземпляры настроек
settings = Settings()
db_settings = DatabaseSettings()
