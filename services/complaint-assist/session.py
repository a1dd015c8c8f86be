"""Extraction session controller: text in, candidate out, review, apply or reject.

State machine::

    IDLE --start--> EXTRACTING --success--> REVIEWING --apply_all--> APPLYING --> IDLE
                               --failure--> IDLE      --apply_field--> REVIEWING
                                                      --reject--> REJECTED --> IDLE

The extraction call is the only await point. Each start is tagged with a
generation number; ``teardown`` bumps it so a response arriving for a dead
session is dropped instead of being shown.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol

from field_paths import canonical
import merge
from models import (
    ExtractionContext,
    ExtractionRequest,
    ExtractionResult,
    MergeRequest,
    SourceHint,
)

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    REVIEWING = "reviewing"
    APPLYING = "applying"
    REJECTED = "rejected"


class SessionStateError(RuntimeError):
    """Operation is not accepted in the session's current state."""


class Extractor(Protocol):
    async def extract(self, request: ExtractionRequest) -> ExtractionResult: ...


class ExtractionSession:
    """Review state for one form instance. Not shared between forms."""

    def __init__(self, extractor: Extractor):
        self._extractor = extractor
        self._generation = 0
        self._state = SessionState.IDLE
        self._result: ExtractionResult | None = None
        self._visible = False
        self._applied: set[str] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def result(self) -> ExtractionResult | None:
        return self._result

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def applied_paths(self) -> frozenset[str]:
        return frozenset(self._applied)

    @property
    def generation(self) -> int:
        return self._generation

    async def start(
        self,
        raw_text: str,
        source_hint: SourceHint | str | None = None,
        context: ExtractionContext | Mapping[str, Any] | None = None,
    ) -> ExtractionResult | None:
        """Run one extraction and enter review.

        Returns None when the session was torn down while the call was in
        flight. Extraction failures return the session to IDLE and propagate.
        """
        if self._state is not SessionState.IDLE:
            raise SessionStateError(f"Cannot start an extraction while {self._state.value}")

        fields: dict[str, Any] = {"raw_text": raw_text}
        if source_hint is not None:
            fields["source_hint"] = source_hint
        if context is not None:
            fields["optional_context"] = context
        request = ExtractionRequest(**fields)

        self._generation += 1
        generation = self._generation
        self._state = SessionState.EXTRACTING

        try:
            result = await self._extractor.extract(request)
        except BaseException:
            if generation == self._generation:
                logger.warning("Extraction failed, session returned to idle")
                self._clear()
            raise

        if generation != self._generation:
            logger.info("Dropping extraction result for stale session generation %d", generation)
            return None

        self._result = result
        self._visible = True
        self._applied = set()
        self._state = SessionState.REVIEWING
        logger.info(
            "Extraction ready for review: %d scored fields, %d unresolved",
            len(result.confidence_scores), len(result.unresolved_fields),
        )
        return result

    def apply_all(self, form: Mapping[str, Any]) -> dict[str, Any]:
        """Write the entire candidate into ``form`` and close the session."""
        result = self._require_review("apply all")
        self._state = SessionState.APPLYING
        try:
            merged = merge.apply_all(form, result)
        except Exception:
            self._state = SessionState.REVIEWING
            raise
        self._clear()
        return merged

    def apply_field(self, form: Mapping[str, Any], path: str) -> dict[str, Any]:
        """Write one candidate field into ``form``; the session stays in review."""
        result = self._require_review("apply a field")
        merged, report = merge.merge_with_report(form, result, MergeRequest.for_paths(canonical(path)))
        self._applied.update(report.applied)
        return merged

    def reject(self) -> None:
        """Discard the candidate without merging. A no-op when idle."""
        if self._state is SessionState.IDLE:
            return
        if self._state is not SessionState.REVIEWING:
            raise SessionStateError(f"Cannot reject while {self._state.value}")
        self._state = SessionState.REJECTED
        logger.info("Extraction result rejected")
        self._clear()

    def toggle_visible(self) -> bool:
        self._require_review("toggle the review panel")
        self._visible = not self._visible
        return self._visible

    def teardown(self) -> None:
        """Abandon the session from any state; in-flight results are ignored."""
        self._generation += 1
        self._clear()

    def _require_review(self, action: str) -> ExtractionResult:
        if self._state is not SessionState.REVIEWING or self._result is None:
            raise SessionStateError(f"Cannot {action} while {self._state.value}")
        return self._result

    def _clear(self) -> None:
        self._result = None
        self._visible = False
        self._applied = set()
        self._state = SessionState.IDLE
