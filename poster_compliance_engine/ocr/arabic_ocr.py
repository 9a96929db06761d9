"""Local Tesseract pass over an uploaded poster.

The recognised text is only a hint for the vision model; the reconciler never
reads it. Requires the ``tesseract`` binary with the Arabic language pack
(``tesseract-ocr-ara``).
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import pytesseract
from PIL import Image, ImageOps

if TYPE_CHECKING:
    from poster_compliance_engine.validation.config import OCRConfig

logger = logging.getLogger(__name__)


def preprocess_image(image_bytes: bytes) -> Image.Image:
    """Grayscale and contrast-stretch the poster; Tesseract reads Arabic better that way."""
    with Image.open(io.BytesIO(image_bytes)) as image:
        image.load()
        grayscale = ImageOps.grayscale(image)
    return ImageOps.autocontrast(grayscale)


class ArabicOCR:
    def __init__(self, lang: str = "ara", tesseract_config: str = "--psm 6") -> None:
        self.lang = lang
        self.tesseract_config = tesseract_config

    @classmethod
    def from_config(cls, config: OCRConfig) -> "ArabicOCR":
        return cls(lang=config.lang, tesseract_config=config.tesseract_config)

    def extract_text(self, image_bytes: bytes) -> str:
        image = preprocess_image(image_bytes)
        text = pytesseract.image_to_string(
            image, lang=self.lang, config=self.tesseract_config
        ).strip()
        logger.debug("OCR completed lang=%s chars=%s", self.lang, len(text))
        return text

    def __call__(self, image_bytes: bytes) -> str:
        return self.extract_text(image_bytes)
