"""
Процессор OCR — распознавание текста на изображении.

Один вызов pytesseract.image_to_data даёт и текст, и уверенность
по каждому слову. Функция синхронная: вызывающий код запускает её
через threadpool, чтобы не блокировать event loop.
"""

import io
import logging
from dataclasses import dataclass

import pytesseract
from PIL import Image

from gateway.config import settings

logger = logging.getLogger(__name__)


@dataclass
class RecognitionResult:
    """
    Результат распознавания одного изображения.

    Attributes:
        text: распознанный текст
        confidence: средняя уверенность по словам (0-100)
        words: количество распознанных слов
        width: ширина изображения в пикселях
        height: высота изображения в пикселях
    """

    text: str
    confidence: float
    words: int
    width: int
    height: int


def recognize_image(image_bytes: bytes, lang: str) -> RecognitionResult:
    """
    Распознаёт текст на изображении через Tesseract.

    Args:
        image_bytes: содержимое файла изображения
        lang: языки в формате Tesseract (например "eng+rus")

    Returns:
        RecognitionResult: текст, уверенность, количество слов

    Raises:
        PIL.UnidentifiedImageError: файл не является растровым изображением
        pytesseract.TesseractError: ошибка Tesseract
    """
    with Image.open(io.BytesIO(image_bytes)) as image:
        image.load()
        width, height = image.size

        # Tesseract не работает с палитрой и альфа-каналом напрямую
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        config = f"--oem {settings.ocr_oem} --psm {settings.ocr_psm}"
        data = pytesseract.image_to_data(
            image,
            lang=lang,
            config=config,
            output_type=pytesseract.Output.DICT,
        )

    text = assemble_text_from_data(data)

    # Средняя уверенность только для реальных слов (conf >= 0)
    confidences = [
        float(c)
        for c, word in zip(data["conf"], data["text"])
        if word.strip() and float(c) >= 0
    ]
    avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

    logger.info(
        f"OCR: {width}x{height}px, слов={len(confidences)}, "
        f"символов={len(text)}, уверенность {avg_confidence:.0f}%"
    )

    return RecognitionResult(
        text=text,
        confidence=round(avg_confidence, 2),
        words=len(confidences),
        width=width,
        height=height,
    )


def assemble_text_from_data(data: dict) -> str:
    """
    Собирает текст из словаря image_to_data с сохранением структуры.

    Алгоритм:
        - Слова на одной строке (line_num) соединяются пробелами
        - Разные строки в одном блоке — новая строка (\\n)
        - Разные блоки — пустая строка между ними (\\n\\n)

    Args:
        data: словарь от pytesseract.image_to_data()

    Returns:
        str: собранный текст
    """
    # Структура: {block_num: {par_num: {line_num: [words]}}}
    blocks: dict = {}

    for i, raw_word in enumerate(data["text"]):
        word = raw_word.strip()
        if not word:
            continue

        block = data["block_num"][i]
        par = data["par_num"][i]
        line = data["line_num"][i]

        blocks.setdefault(block, {}).setdefault(par, {}).setdefault(line, []).append(word)

    result_blocks = []
    for block_num in sorted(blocks):
        block_lines = []
        for par_num in sorted(blocks[block_num]):
            for line_num in sorted(blocks[block_num][par_num]):
                block_lines.append(" ".join(blocks[block_num][par_num][line_num]))
        result_blocks.append("\n".join(block_lines))

    return "\n\n".join(result_blocks)
