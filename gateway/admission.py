"""
Фильтр допуска загружаемых файлов.

Решает, пропускать ли файл к OCR, до того как его получит обработчик:
    - Размер: не больше max_file_size_mb (иначе PayloadTooLarge)
    - Тип: заявленный MIME из семейства image/ или application/octet-stream,
      ИЛИ расширение имени файла из белого списка

Проверки типа объединены через ИЛИ: клиенты часто присылают
несогласованные метаданные, и достаточно любого одного признака.
"""

import logging
import os
from dataclasses import dataclass
from typing import AsyncIterator, BinaryIO, Optional

from fastapi import File, UploadFile

from gateway.config import settings
from gateway.errors import PayloadTooLarge, ValidationFailure

logger = logging.getLogger(__name__)

IMAGE_FIELD = "image"
IMAGE_MEDIA_PREFIX = "image/"
BINARY_FALLBACK_TYPE = "application/octet-stream"
ALLOWED_EXTENSIONS = frozenset(
    {"jpg", "jpeg", "png", "gif", "bmp", "tiff", "webp", "svg"}
)


@dataclass
class UploadedFile:
    """
    Загруженный файл, принадлежащий одному запросу.

    Attributes:
        filename: исходное имя файла
        media_type: заявленный клиентом MIME (может отсутствовать)
        field_name: имя поля multipart формы
        size: размер в байтах
        handle: временный файл с содержимым
    """

    filename: str
    media_type: Optional[str]
    field_name: str
    size: int
    handle: BinaryIO

    @classmethod
    def from_upload(cls, upload: UploadFile, field_name: str = IMAGE_FIELD) -> "UploadedFile":
        return cls(
            filename=upload.filename or "",
            media_type=upload.content_type,
            field_name=field_name,
            size=_get_file_size(upload.file),
            handle=upload.file,
        )

    def read(self) -> bytes:
        self.handle.seek(0)
        data = self.handle.read()
        self.handle.seek(0)
        return data


def _get_file_size(handle: BinaryIO) -> int:
    handle.seek(0, os.SEEK_END)
    size = handle.tell()
    handle.seek(0)
    return size


def file_extension(filename: str) -> str:
    """
    Расширение имени файла в нижнем регистре, без точки.

    Для имени без точки возвращает пустую строку.
    """
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def is_media_type_allowed(media_type: Optional[str]) -> bool:
    """Заявленный тип из семейства image/ или бинарный fallback."""
    if not media_type:
        return False
    return media_type.startswith(IMAGE_MEDIA_PREFIX) or media_type == BINARY_FALLBACK_TYPE


def is_extension_allowed(filename: Optional[str]) -> bool:
    """Расширение файла входит в белый список (без учёта регистра)."""
    return file_extension(filename or "") in ALLOWED_EXTENSIONS


def check_admission(candidate: UploadedFile, max_size_bytes: int) -> None:
    """
    Проверяет файл фильтром допуска.

    Размер проверяется первым: слишком большой файл отклоняется
    независимо от заявленного типа.

    Args:
        candidate: загруженный файл
        max_size_bytes: максимальный размер в байтах

    Raises:
        PayloadTooLarge: файл больше max_size_bytes
        ValidationFailure: ни тип, ни расширение не подходят
    """
    if candidate.size > max_size_bytes:
        logger.info(
            f"REJECTED (size): filename={candidate.filename!r} "
            f"size={candidate.size} limit={max_size_bytes}"
        )
        raise PayloadTooLarge(candidate.size, max_size_bytes)

    extension = file_extension(candidate.filename)
    mime_ok = is_media_type_allowed(candidate.media_type)
    extension_ok = is_extension_allowed(candidate.filename)
    accepted = mime_ok or extension_ok

    logger.info(
        f"{'ACCEPTED' if accepted else 'REJECTED'}: filename={candidate.filename!r} "
        f"field={candidate.field_name!r} mimetype={candidate.media_type!r} "
        f"extension={extension!r} mime_ok={mime_ok} extension_ok={extension_ok}"
    )

    if not accepted:
        raise ValidationFailure("Only image files are allowed!")


async def admitted_image(
    image: Optional[UploadFile] = File(
        default=None,
        description="Изображение для распознавания",
    ),
) -> AsyncIterator[UploadedFile]:
    """
    FastAPI зависимость: пропускает поле image через фильтр допуска.

    Временный файл освобождается после завершения обработчика
    или при отказе фильтра.
    """
    if image is None:
        raise ValidationFailure("No image file provided", code="MISSING_FILE")

    try:
        candidate = UploadedFile.from_upload(image, field_name=IMAGE_FIELD)
        check_admission(candidate, settings.max_file_size_bytes)
        yield candidate
    finally:
        await image.close()
