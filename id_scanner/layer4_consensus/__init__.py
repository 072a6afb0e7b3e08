"""
Layer 4 — Consensus
Field extraction from recognized text and reduction of many noisy samples
to one trustworthy answer.
"""
from .dates import (
    MAX_AGE,
    MIN_AGE,
    calculate_age,
    extract_birth_date,
    find_dates,
    is_plausible_birth_date,
    verify_majority,
)
from .document_fields import DocumentType, classify_document_type, extract_document_number
from .models import ExtractionResult, OCRSample, ScanStatus
from .resolver import ConsensusResolver

__all__ = [
    'MAX_AGE',
    'MIN_AGE',
    'calculate_age',
    'extract_birth_date',
    'find_dates',
    'is_plausible_birth_date',
    'verify_majority',
    'DocumentType',
    'classify_document_type',
    'extract_document_number',
    'ExtractionResult',
    'OCRSample',
    'ScanStatus',
    'ConsensusResolver',
]
