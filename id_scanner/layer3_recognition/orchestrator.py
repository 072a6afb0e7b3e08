"""
Layer 3 — Recognition Orchestrator
Component: bounded worker pool over the 12 image variants
Responsibility: Run the recognizer on every variant concurrently, turn each
successful read into an OCRSample and isolate per-job failures.

Jobs share nothing mutable. A job that raises, times out, breaks the engine
contract or yields no plausible date is simply not a sample.
"""
import logging
import math
import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

from ..error_handlers import RecognitionError, SessionClosedError
from ..layer4_consensus import extract_birth_date, extract_document_number
from ..layer4_consensus.models import OCRSample
from ..progress import ProgressChannel, ensure_channel
from ..raster import RasterImage
from .engine import RecognitionStatus, TextRecognizer, coerce_output
from .variants import OCRVariant, generate_variants

logger = logging.getLogger(__name__)

# Seconds between cancellation checks while waiting on the pool
POLL_INTERVAL = 0.1


class DispatchPolicy(str, Enum):
    EXHAUSTIVE = 'exhaustive'          # Run all variants, vote on everything
    FIRST_SUCCESS = 'first_success'    # Stop at the first plausible date


def default_worker_count() -> int:
    return min(os.cpu_count() or 4, 4)


@dataclass
class OrchestratorConfig:
    """Worker pool configuration"""
    max_workers: int = field(default_factory=default_worker_count)
    job_timeout: float = 20.0                  # Seconds allowed per job slot
    policy: DispatchPolicy = DispatchPolicy.EXHAUSTIVE


class RecognitionOrchestrator:
    """
    Fan-out/fan-in of variant recognition over a ThreadPoolExecutor.

    The pool is created on first use and lives until shutdown(). Shutting
    down with cancel=True sets a cancellation event: queued jobs skip the
    engine call, running jobs finish and their results are discarded.
    """

    def __init__(self, recognizer: TextRecognizer,
                 config: Optional[OrchestratorConfig] = None,
                 today: Optional[date] = None):
        self.recognizer = recognizer
        self.config = config or OrchestratorConfig()
        self.today = today
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._closed = False

        logger.info("RecognitionOrchestrator initialized")
        logger.debug(f"  Workers: {self.config.max_workers}")
        logger.debug(f"  Policy: {self.config.policy.value}")

    @property
    def is_shut_down(self) -> bool:
        return self._closed

    def _ensure_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._closed:
                raise SessionClosedError()
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.max_workers,
                    thread_name_prefix='ocr-worker'
                )
            return self._executor

    def run(self, image: RasterImage, progress: Optional[ProgressChannel] = None) -> List[OCRSample]:
        """
        Recognize all variants of an image.

        Args:
            image: Normalized portrait image
            progress: Optional channel for progress tokens

        Returns:
            List[OCRSample]: Successful samples in completion order

        Raises:
            SessionClosedError: If the orchestrator was already shut down
        """
        progress = ensure_channel(progress)
        executor = self._ensure_executor()
        workers = self.config.max_workers
        progress.publish(f"initializing_{workers}_workers", workers=workers)

        progress.publish("preparing_variants")
        variants = generate_variants(image)
        total = len(variants)

        progress.publish("processing_variants", total=total)
        stop = threading.Event()
        futures = {executor.submit(self._run_job, variant, stop): variant for variant in variants}

        samples: List[OCRSample] = []
        completed = 0
        budget = self.config.job_timeout * math.ceil(total / max(workers, 1))
        deadline = time.monotonic() + budget
        pending = set(futures)
        finished = False

        try:
            while pending and not finished and not self._cancelled.is_set():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f"Recognition timed out after {budget:.1f}s, {len(pending)} variant(s) dropped")
                    break

                done, pending = wait(pending, timeout=min(remaining, POLL_INTERVAL), return_when=FIRST_COMPLETED)
                for future in done:
                    if future.cancelled():
                        continue
                    variant = futures[future]
                    sample = self._collect(future, variant)

                    completed += 1
                    progress.publish(f"variant_{completed}_of_{total}_done", variant=variant.label,
                                     success=sample is not None)

                    if sample is None:
                        continue
                    samples.append(sample)

                    if self.config.policy is DispatchPolicy.FIRST_SUCCESS:
                        logger.info(f"First plausible date from {variant.label}, cancelling remaining jobs")
                        finished = True
                        break
        finally:
            stop.set()
            for future in futures:
                future.cancel()

        if self._cancelled.is_set():
            logger.info(f"Recognition cancelled, discarding {len(samples)} sample(s)")
            return []

        logger.info(f"Recognition finished: {len(samples)}/{total} variants produced a date")
        return samples

    def _collect(self, future: Future, variant: OCRVariant) -> Optional[OCRSample]:
        try:
            return future.result()
        except RecognitionError as e:
            logger.warning(f"Variant {variant.label} dropped: {e.message}")
        except Exception as e:
            logger.warning(f"Variant {variant.label} dropped: {type(e).__name__}: {e}")
        return None

    def _run_job(self, variant: OCRVariant, stop: threading.Event) -> Optional[OCRSample]:
        if stop.is_set() or self._cancelled.is_set():
            return None

        output = coerce_output(self.recognizer.recognize(variant.image))
        if output.status is RecognitionStatus.FAILED:
            logger.warning(f"Variant {variant.label} failed: {output.error}")
            return None

        text = output.text.upper()
        birth_date = extract_birth_date(text, self.today)
        if birth_date is None:
            logger.debug(f"Variant {variant.label}: {RecognitionStatus.NO_DATE.value}")
            return None

        return OCRSample(
            date=birth_date,
            document_number=extract_document_number(text, birth_date),
            confidence=output.confidence,
            raw_text=text,
            source_variant=variant
        )

    def shutdown(self, cancel: bool = True):
        """
        Release the worker pool. Safe to call more than once.

        Args:
            cancel: Skip queued jobs and discard in-flight results
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            executor, self._executor = self._executor, None

        if cancel:
            self._cancelled.set()
        if executor is not None:
            executor.shutdown(wait=not cancel, cancel_futures=cancel)
        logger.info("RecognitionOrchestrator shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
