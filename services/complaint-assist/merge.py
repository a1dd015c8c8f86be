"""Selective merge of an extraction candidate into a live form model.

One ``merge`` operation serves both the bulk "Apply All" action and the
single-field "Apply" action, parameterized by a MergeRequest. The input
form is never mutated; callers must use the returned model.
"""

import logging
from collections.abc import Mapping
from typing import Any

from field_paths import NOT_FOUND, canonical, set_value
from models import ExtractionResult, MergeMode, MergeReport, MergeRequest, thaw

logger = logging.getLogger(__name__)


def merge(form: Mapping[str, Any], result: ExtractionResult, request: MergeRequest) -> dict[str, Any]:
    merged, _ = merge_with_report(form, result, request)
    return merged


def merge_with_report(
    form: Mapping[str, Any],
    result: ExtractionResult,
    request: MergeRequest,
) -> tuple[dict[str, Any], MergeReport]:
    """Merge and also report which paths were applied, blocked, or fell back.

    SELECTED paths scoring below the apply threshold are skipped. A selected
    path with no candidate value triggers a merge of the whole candidate.
    """
    if request.mode is MergeMode.ALL:
        return _union(form, result.extracted_data), MergeReport(applied=sorted(result.extracted_data))

    merged: Any = dict(form)
    report = MergeReport()

    for path in sorted(request.selected_paths):
        if not result.can_apply(path):
            logger.warning(
                "Skipping %s: confidence %.2f is below the apply threshold",
                path, result.confidence_for(path),
            )
            report.blocked.append(path)
            continue

        value = result.candidate_value(path)
        if value is NOT_FOUND:
            logger.warning("No candidate value at %s, applying the whole candidate instead", path)
            merged = _union(merged, result.extracted_data)
            report.fallback = True
            report.applied = sorted(set(report.applied) | set(result.extracted_data))
            continue

        merged = set_value(merged, path, thaw(value))
        report.applied.append(path)

    return merged, report


def apply_all(form: Mapping[str, Any], result: ExtractionResult) -> dict[str, Any]:
    """Merge the whole candidate, ignoring scores. Used by ExtractionSession.apply_all."""
    return merge(form, result, MergeRequest.for_all())


def apply_field(form: Mapping[str, Any], result: ExtractionResult, path: str) -> dict[str, Any]:
    """Apply one field if its score passes the gate.

    Raises PathSyntaxError on a malformed path. Callers that need to know
    whether the field was applied or blocked use ``merge_with_report``.
    """
    return merge(form, result, MergeRequest.for_paths(canonical(path)))


def _union(destination: Mapping[str, Any], candidate: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive union favoring the candidate; destination-only keys survive."""
    merged = dict(destination)
    for key, value in candidate.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = _union(current, value)
        else:
            merged[key] = thaw(value)
    return merged
