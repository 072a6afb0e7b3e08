"""
Layer 4 — Consensus Resolver
Reduces the noisy per-variant samples to a single answer by mode voting
on the birth date, breaking ties by engine confidence.
"""
import logging
from collections import Counter
from datetime import date
from typing import List, Optional, Sequence

from .dates import calculate_age, is_plausible_birth_date
from .document_fields import classify_document_type, extract_document_number
from .models import ExtractionResult, OCRSample, ScanStatus

logger = logging.getLogger(__name__)


class ConsensusResolver:
    """Mode voting over OCR samples."""

    def __init__(self, today: Optional[date] = None):
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def select_winner(self, samples: Sequence[OCRSample]) -> Optional[OCRSample]:
        """
        Most frequent date wins; among tied dates, the single sample with
        the highest confidence wins.
        """
        eligible = [s for s in samples if is_plausible_birth_date(s.date, self.today)]
        if len(eligible) != len(samples):
            logger.warning(f"Dropped {len(samples) - len(eligible)} implausible samples before voting")
        if not eligible:
            return None

        counts = Counter(s.date for s in eligible)
        top = max(counts.values())
        tied = {d for d, n in counts.items() if n == top}
        contenders: List[OCRSample] = [s for s in eligible if s.date in tied]
        return max(contenders, key=lambda s: s.confidence)

    def resolve(self, samples: Sequence[OCRSample]) -> ExtractionResult:
        """
        Build the final ExtractionResult.

        Args:
            samples: Successful per-variant samples (may be empty)

        Returns:
            ExtractionResult: ``no_consensus`` when nothing plausible exists
        """
        winner = self.select_winner(samples)
        if winner is None:
            logger.info("No consensus: zero plausible samples")
            return ExtractionResult.no_consensus()

        agreeing = sum(1 for s in samples if s.date == winner.date)
        logger.info(
            f"Consensus on {winner.iso_date}: {agreeing}/{len(samples)} samples agree, "
            f"best confidence {winner.confidence:.1f}"
        )

        document_number = winner.document_number
        if document_number is None:
            document_number = extract_document_number(winner.raw_text, winner.date)

        preview = None
        variant = winner.source_variant
        if variant is not None and getattr(variant, 'image', None) is not None:
            preview = variant.image.encode_jpeg()

        return ExtractionResult(
            status=ScanStatus.SUCCESS,
            birth_date=winner.iso_date,
            document_number=document_number,
            confidence=max(0.0, min(1.0, winner.confidence / 100.0)),
            document_type=classify_document_type(winner.raw_text),
            sample_count=len(samples),
            processed_preview=preview,
            raw_text=winner.raw_text,
            age=calculate_age(winner.date, self.today)
        )
