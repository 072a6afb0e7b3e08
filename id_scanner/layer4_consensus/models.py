"""
Layer 4 — Consensus data model
"""
import base64
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from .document_fields import DocumentType


class ScanStatus(str, Enum):
    SUCCESS = 'success'
    NO_CONSENSUS = 'no_consensus'


@dataclass(frozen=True)
class OCRSample:
    """One recognized variant whose text yielded a plausible birth date."""
    date: date
    document_number: Optional[str]
    confidence: float               # Engine confidence, 0..100
    raw_text: str
    source_variant: Any = None      # OCRVariant the text came from

    @property
    def iso_date(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True)
class ExtractionResult:
    """Final answer of one scan invocation."""
    status: ScanStatus
    birth_date: Optional[str]       # ISO-8601
    document_number: Optional[str]
    confidence: float               # 0..1
    document_type: DocumentType
    sample_count: int
    processed_preview: Optional[bytes] = None   # JPEG of the winning variant
    raw_text: str = ""
    age: Optional[int] = None

    @classmethod
    def no_consensus(cls) -> 'ExtractionResult':
        return cls(
            status=ScanStatus.NO_CONSENSUS,
            birth_date=None,
            document_number=None,
            confidence=0.0,
            document_type=DocumentType.UNKNOWN,
            sample_count=0
        )

    @property
    def is_adult(self) -> Optional[bool]:
        if self.age is None:
            return None
        return self.age >= 18

    def to_dict(self) -> Dict:
        """JSON-friendly view; the preview is base64 encoded."""
        preview = None
        if self.processed_preview:
            preview = base64.b64encode(self.processed_preview).decode('ascii')
        return {
            'status': self.status.value,
            'birth_date': self.birth_date,
            'document_number': self.document_number,
            'confidence': round(self.confidence, 4),
            'document_type': self.document_type.value,
            'sample_count': self.sample_count,
            'age': self.age,
            'is_adult': self.is_adult,
            'processed_preview': preview
        }
