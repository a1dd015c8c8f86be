"""Field-by-field review rows comparing an extraction candidate with the live form."""

from collections.abc import Mapping
from typing import Any

from field_paths import NOT_FOUND, FieldPath, get_value, leaf_paths, parse
from models import ExtractionResult, ReviewRow


def _found(value: Any) -> tuple[Any, bool]:
    if value is NOT_FOUND:
        return None, False
    return value, True


def review_paths(result: ExtractionResult) -> list[FieldPath]:
    """Candidate leaves in document order, then scored/unresolved paths the candidate lacks.

    Candidate leaves are used as walked, never re-parsed from their string
    form, so keys like ``unit_price (Rs.)`` still resolve.
    """
    paths = leaf_paths(result.extracted_data)
    seen = {str(path) for path in paths}
    extras = sorted(
        (set(result.confidence_scores) | set(result.unresolved_fields)) - seen
    )
    return paths + [parse(path) for path in extras]


def build_review_rows(result: ExtractionResult, form: Mapping[str, Any] | None = None) -> list[ReviewRow]:
    rows = []
    for path in review_paths(result):
        value, found = _found(result.candidate_value(path))
        current, current_found = _found(get_value(form or {}, path))
        rows.append(ReviewRow(
            path=str(path),
            value=value,
            found=found,
            current=current,
            current_found=current_found,
            confidence=result.confidence_for(path),
            tier=result.tier_for(path),
            unresolved=result.is_unresolved(path),
            can_apply=result.can_apply(path),
        ))
    return rows
