"""Main conversion orchestrator.

Flow per call: size guard -> classify -> primary backend -> (score) ->
(vision fallback) -> assemble. Every path ends in a ``ConversionResult``;
no exception escapes ``convert``.
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from typing import Mapping

from .assembler import ResultAssembler
from .backends import TextExtractionBackend, default_backends
from .classifier import MediaClassifier
from .config import SETTINGS, ConversionSettings
from .media import MediaDescriptor, RequestContext
from .schema import (
    BackendKind,
    ConversionResult,
    ExtractionOutcome,
    ExtractionStrategy,
)
from .scoring import ConfidenceScorer
from .utils import (
    BackendError,
    CancelledConversionError,
    ConversionError,
    NoContentExtractedError,
    OversizeInputError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)


class ConversionState(str, Enum):
    CLASSIFYING = "CLASSIFYING"
    PRIMARY_EXTRACTING = "PRIMARY_EXTRACTING"
    SCORING = "SCORING"
    FALLBACK_EXTRACTING = "FALLBACK_EXTRACTING"
    ASSEMBLING = "ASSEMBLING"
    DONE = "DONE"
    ERRORED = "ERRORED"


PRIMARY_BACKENDS: dict[ExtractionStrategy, BackendKind] = {
    ExtractionStrategy.TEXT_ONLY: BackendKind.PLAIN_TEXT,
    ExtractionStrategy.OCR: BackendKind.OCR,
    ExtractionStrategy.OCR_WITH_FALLBACK: BackendKind.OCR,
    ExtractionStrategy.SPEECH: BackendKind.SPEECH,
}

# Strategies whose primary confidence is scored against the threshold.
SCORED_STRATEGIES = frozenset({ExtractionStrategy.OCR, ExtractionStrategy.OCR_WITH_FALLBACK})
FALLBACK_STRATEGIES = frozenset({ExtractionStrategy.OCR_WITH_FALLBACK})


class _ConversionRun:
    """Per-call bookkeeping; never shared between calls."""

    def __init__(self, descriptor: MediaDescriptor, context: RequestContext, started: float) -> None:
        self.descriptor = descriptor
        self.context = context
        self.started = started
        self.strategy: ExtractionStrategy | None = None
        self.state: ConversionState | None = None
        self.used_fallback = False
        self.notes: list[str] = []

    def transition(self, state: ConversionState) -> None:
        logger.debug(
            "Conversion %s [tenant=%s request=%s]: %s -> %s",
            self.descriptor.id,
            self.context.tenant_id,
            self.context.request_id,
            self.state.value if self.state else "START",
            state.value,
        )
        self.state = state


class ConversionOrchestrator:
    """Routes media to backends, scores OCR output and applies the fallback policy."""

    def __init__(
        self,
        settings: ConversionSettings | None = None,
        backends: Mapping[BackendKind, TextExtractionBackend] | None = None,
        classifier: MediaClassifier | None = None,
        scorer: ConfidenceScorer | None = None,
        assembler: ResultAssembler | None = None,
    ) -> None:
        self.settings = settings or ConversionSettings()
        self.backends = dict(backends if backends is not None else default_backends(self.settings))
        self.classifier = classifier or MediaClassifier()
        self.scorer = scorer or ConfidenceScorer()
        self.assembler = assembler or ResultAssembler()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def convert(
        self,
        descriptor: MediaDescriptor,
        context: RequestContext | None = None,
        strategy: ExtractionStrategy | None = None,
    ) -> ConversionResult:
        """Convert *descriptor* to text.

        *strategy* overrides classification, e.g. ``OCR`` for a PDF the
        caller knows to be scanned.
        """
        run = _ConversionRun(descriptor, context or RequestContext(), self.assembler.start())
        try:
            result = self._convert(run, strategy)
        except ConversionError as exc:
            result = self._fail(run, exc)
        except Exception as exc:
            logger.exception(
                "Unexpected error converting %s [tenant=%s request=%s]",
                descriptor.id, run.context.tenant_id, run.context.request_id,
            )
            result = self._fail(run, ConversionError(f"{type(exc).__name__}: {exc}"))
        finally:
            descriptor.close()
        run.transition(ConversionState.DONE)
        logger.info(
            "Conversion %s finished [tenant=%s request=%s]: status=%s method=%s "
            "confidence=%s fallback=%s elapsed=%dms",
            descriptor.id,
            run.context.tenant_id,
            run.context.request_id,
            result.status.value,
            result.method.value if result.method else None,
            result.confidence,
            result.used_fallback,
            result.elapsed_ms,
        )
        return result

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def _convert(self, run: _ConversionRun, strategy: ExtractionStrategy | None) -> ConversionResult:
        descriptor = run.descriptor
        limit = self.settings.max_file_size_bytes
        if descriptor.size_bytes is not None and descriptor.size_bytes > limit:
            raise OversizeInputError(
                f"{descriptor.size_bytes} bytes exceeds limit of {limit} bytes"
            )

        run.transition(ConversionState.CLASSIFYING)
        run.strategy = strategy or self.classifier.classify(descriptor.content_type)
        primary = self.backends.get(PRIMARY_BACKENDS.get(run.strategy))
        if primary is None:
            run.transition(ConversionState.ASSEMBLING)
            return self.assembler.not_supported(
                descriptor,
                run.started,
                UnsupportedFormatError(
                    f"No backend configured for {run.strategy.value} "
                    f"(content type {descriptor.content_type!r})"
                ),
                strategy=run.strategy,
                notes=run.notes,
            )

        run.transition(ConversionState.PRIMARY_EXTRACTING)
        outcome, error = self._invoke(run, primary)
        self._checkpoint(run)

        if error is not None:
            if run.strategy in FALLBACK_STRATEGIES and error.recoverable:
                return self._fallback(run, None, None, error)
            return self._fail(run, error, method=primary.kind)

        if run.strategy not in SCORED_STRATEGIES:
            return self._settle(run, outcome, outcome.confidence, None)

        run.transition(ConversionState.SCORING)
        confidence = outcome.confidence
        if confidence is None:
            confidence = self.scorer.score(outcome.text)
            run.notes.append(f"heuristic confidence {confidence}")
        if run.strategy not in FALLBACK_STRATEGIES:
            return self._settle(run, outcome, confidence, None)

        threshold = self.settings.ocr_fallback_threshold
        if confidence >= threshold and outcome.has_text:
            return self._settle(run, outcome, confidence, None)
        if outcome.has_text:
            run.notes.append(
                f"fallback triggered: primary confidence {confidence} < threshold {threshold}"
            )
        else:
            run.notes.append("fallback triggered: primary returned no text")
        return self._fallback(run, outcome, confidence, None)

    def _fallback(
        self,
        run: _ConversionRun,
        primary: ExtractionOutcome | None,
        primary_confidence: int | None,
        primary_error: BackendError | None,
    ) -> ConversionResult:
        backend = self.backends.get(BackendKind.VISION_FALLBACK)
        if backend is None:
            run.notes.append("fallback unavailable: no vision backend configured")
            return self._settle(run, primary, primary_confidence, primary_error)

        run.transition(ConversionState.FALLBACK_EXTRACTING)
        run.used_fallback = True
        outcome, error = self._invoke(run, backend)
        self._checkpoint(run)

        if outcome is not None and outcome.has_text:
            if outcome.confidence is None:
                run.notes.append("fallback confidence unknown; using its non-empty text")
            run.transition(ConversionState.ASSEMBLING)
            return self.assembler.success(
                run.descriptor, run.started, outcome, run.strategy,
                confidence=outcome.confidence, used_fallback=True, notes=run.notes,
            )

        if primary is not None and primary.has_text:
            run.notes.append("fallback produced no text; keeping primary result")
            return self._settle(run, primary, primary_confidence, None)

        errors = [err for err in (primary_error, error) if err is not None]
        if errors:
            return self._fail(
                run,
                BackendError("; ".join(str(err) for err in errors)),
                method=backend.kind,
            )
        return self._fail(
            run, NoContentExtractedError("no backend produced text"), method=backend.kind
        )

    def _settle(
        self,
        run: _ConversionRun,
        outcome: ExtractionOutcome | None,
        confidence: int | None,
        error: BackendError | None,
    ) -> ConversionResult:
        """Finish with *outcome* if it carries text, otherwise fail."""
        if outcome is not None and outcome.has_text:
            run.transition(ConversionState.ASSEMBLING)
            return self.assembler.success(
                run.descriptor, run.started, outcome, run.strategy,
                confidence=confidence, used_fallback=run.used_fallback, notes=run.notes,
            )
        if error is not None:
            return self._fail(run, error, method=error.backend)
        method = outcome.backend if outcome is not None else None
        return self._fail(
            run,
            NoContentExtractedError(f"{method.value if method else 'backend'} returned no text"),
            method=method,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _invoke(
        self, run: _ConversionRun, backend: TextExtractionBackend
    ) -> tuple[ExtractionOutcome | None, BackendError | None]:
        """Run *backend* once; BackendError is returned, not raised."""
        try:
            outcome = backend.extract(run.descriptor)
        except BackendError as exc:
            logger.warning(
                "Backend %s failed for %s [tenant=%s request=%s]: %s",
                backend.kind.value, run.descriptor.id,
                run.context.tenant_id, run.context.request_id, exc,
            )
            run.notes.append(f"{backend.kind.value} failed: {exc}")
            return None, exc
        if outcome is None:
            error = BackendError("returned no outcome", backend=backend.kind)
            run.notes.append(f"{backend.kind.value} failed: {error}")
            return None, error
        logger.info(
            "Backend %s extracted %d chars from %s (confidence=%s)",
            backend.kind.value, len(outcome.text), run.descriptor.id, outcome.confidence,
        )
        if outcome.note:
            run.notes.append(outcome.note)
        return outcome, None

    def _checkpoint(self, run: _ConversionRun) -> None:
        if run.context.cancelled:
            raise CancelledConversionError("caller abandoned the conversion")

    def _fail(
        self,
        run: _ConversionRun,
        error: ConversionError,
        method: BackendKind | None = None,
    ) -> ConversionResult:
        run.transition(ConversionState.ERRORED)
        run.transition(ConversionState.ASSEMBLING)
        return self.assembler.failure(
            run.descriptor,
            run.started,
            error,
            strategy=run.strategy,
            method=method,
            used_fallback=run.used_fallback,
            notes=run.notes,
        )


@functools.lru_cache(maxsize=1)
def get_orchestrator() -> ConversionOrchestrator:
    """Process-wide orchestrator built from environment settings."""
    return ConversionOrchestrator(SETTINGS)
