"""
Layer 3 — Text Recognition engine contract
Component: recognizer port and the Tesseract adapter
Responsibility: Turn a raster image into text plus a 0..100 confidence
"""
import logging
import os
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Mapping, Optional, Protocol

import pytesseract

from ..error_handlers import RecognitionContractError, RecognitionEngineError
from ..raster import RasterImage

logger = logging.getLogger(__name__)

# Windows installs are not on PATH by default
if os.name == 'nt':
    _tesseract_cmd = r'C:\Program Files\Tesseract-OCR\tesseract.exe'
    if os.path.exists(_tesseract_cmd):
        pytesseract.pytesseract.tesseract_cmd = _tesseract_cmd


class RecognitionStatus(str, Enum):
    OK = 'ok'
    FAILED = 'failed'
    NO_DATE = 'no_date'


@dataclass(frozen=True)
class RecognitionOutput:
    """
    Tagged result of one recognition attempt.

    ``status`` is always set; ``text``/``confidence`` are meaningful for
    OK and NO_DATE, ``error`` for FAILED.
    """
    status: RecognitionStatus
    text: str = ""
    confidence: float = 0.0
    error: Optional[str] = None

    @classmethod
    def ok(cls, text: str, confidence: float) -> 'RecognitionOutput':
        return cls(RecognitionStatus.OK, text=text, confidence=confidence)

    @classmethod
    def failed(cls, error: str) -> 'RecognitionOutput':
        return cls(RecognitionStatus.FAILED, error=error)


def coerce_output(raw: Any) -> RecognitionOutput:
    """
    Validate whatever an engine returned.

    Accepts a RecognitionOutput or a mapping with a string ``text`` and a
    numeric ``confidence`` in 0..100. Anything else is rejected.

    Raises:
        RecognitionContractError: On any other shape
    """
    if isinstance(raw, RecognitionOutput):
        if raw.status is RecognitionStatus.FAILED:
            return raw
        text, confidence = raw.text, raw.confidence
    elif isinstance(raw, Mapping):
        text, confidence = raw.get('text'), raw.get('confidence')
    else:
        raise RecognitionContractError(raw)

    if not isinstance(text, str) or isinstance(confidence, bool) or not isinstance(confidence, Real):
        raise RecognitionContractError(raw)
    if not 0 <= float(confidence) <= 100:
        raise RecognitionContractError(raw)
    return RecognitionOutput.ok(text, float(confidence))


class TextRecognizer(Protocol):
    def recognize(self, image: RasterImage) -> RecognitionOutput:
        ...


class TesseractRecognizer:
    """
    OCR for identity documents using paragraph layout.
    Confidence is the mean of the word confidences Tesseract reports.
    """

    def __init__(self, lang: str = 'por+eng', config: Optional[str] = None,
                 timeout: float = 0, tesseract_cmd: Optional[str] = None):
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.lang = lang
        # preserve_interword_spaces keeps date separators readable for regex
        self.config = config or r"--oem 3 --psm 6 -c preserve_interword_spaces=1"
        self.timeout = timeout
        logger.info(f"TesseractRecognizer initialized (lang={lang})")

    def recognize(self, image: RasterImage) -> RecognitionOutput:
        try:
            data = pytesseract.image_to_data(
                image.pixels,
                lang=self.lang,
                config=self.config,
                timeout=self.timeout,
                output_type=pytesseract.Output.DICT
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError, OSError) as e:
            raise RecognitionEngineError(e)

        return RecognitionOutput.ok(self._join_lines(data), self._mean_confidence(data))

    @staticmethod
    def _join_lines(data: Mapping) -> str:
        lines = {}
        for i, word in enumerate(data.get('text', [])):
            if not word or not word.strip():
                continue
            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(key, []).append(word.strip())
        return "\n".join(" ".join(words) for _, words in sorted(lines.items()))

    @staticmethod
    def _mean_confidence(data: Mapping) -> float:
        scores = []
        for word, conf in zip(data.get('text', []), data.get('conf', [])):
            try:
                value = float(conf)
            except (TypeError, ValueError):
                continue
            if word and word.strip() and value >= 0:
                scores.append(value)
        if not scores:
            return 0.0
        return sum(scores) / len(scores)
