"""
Иерархия ошибок шлюза.

Все ошибки, которые маршруты и зависимости выбрасывают наружу,
классифицируются единым обработчиком (gateway.error_handlers).
"""

from typing import Optional

# Маркер превышения размера файла
LIMIT_FILE_SIZE = "LIMIT_FILE_SIZE"


class GatewayError(Exception):
    """Базовая ошибка шлюза."""

    def __init__(self, message: str, code: str = "GATEWAY_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationFailure(GatewayError):
    """
    Загруженный файл не прошёл фильтр допуска.

    Attributes:
        code: машинный код причины (тип, отсутствие файла, размер)
    """

    def __init__(self, message: str, code: str = "INVALID_FILE_TYPE"):
        super().__init__(message, code=code)


class PayloadTooLarge(ValidationFailure):
    """Файл больше допустимого размера. Несёт маркер LIMIT_FILE_SIZE."""

    def __init__(self, size_bytes: int, max_size_bytes: int):
        super().__init__(
            f"File too large: {size_bytes} bytes (limit {max_size_bytes} bytes)",
            code=LIMIT_FILE_SIZE,
        )
        self.size_bytes = size_bytes
        self.max_size_bytes = max_size_bytes


class CollaboratorFailure(GatewayError):
    """Ошибка внешнего сервиса: OCR движка или хранилища журнала."""

    def __init__(self, message: str, collaborator: str):
        super().__init__(message, code="COLLABORATOR_ERROR")
        self.collaborator = collaborator


class ShutdownFailure(GatewayError):
    """
    Ошибка при остановке сервиса.

    Attributes:
        stage: этап остановки ("drain" или "close")
    """

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        message = f"Shutdown failed during {stage}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, code="SHUTDOWN_ERROR")
        self.stage = stage


def is_size_exceeded(exc: BaseException) -> bool:
    """Отказ фильтра допуска с маркером превышения размера."""
    return isinstance(exc, ValidationFailure) and exc.code == LIMIT_FILE_SIZE
