"""
Layer 3 — Text Recognition
Variant generation and concurrent recognition of each variant.
"""
from .engine import (
    RecognitionOutput,
    RecognitionStatus,
    TesseractRecognizer,
    TextRecognizer,
    coerce_output,
)
from .orchestrator import (
    DispatchPolicy,
    OrchestratorConfig,
    RecognitionOrchestrator,
    default_worker_count,
)
from .variants import ANGLES, FILTER_PASSES, OCRVariant, contrast_filter, generate_variants, rotate

__all__ = [
    'RecognitionOutput',
    'RecognitionStatus',
    'TesseractRecognizer',
    'TextRecognizer',
    'coerce_output',
    'DispatchPolicy',
    'OrchestratorConfig',
    'RecognitionOrchestrator',
    'default_worker_count',
    'ANGLES',
    'FILTER_PASSES',
    'OCRVariant',
    'contrast_filter',
    'generate_variants',
    'rotate',
]
