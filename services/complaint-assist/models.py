"""Pydantic models for the extraction service boundary, merge requests and review rows."""

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from confidence import ConfidenceTier, can_auto_apply, classify
from config import settings
from field_paths import PathLike, canonical, get_value


class SourceHint(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    VOICE = "voice"
    OTHER = "other"


class ExtractionContext(BaseModel):
    """Free-form defaults passed to the extraction service."""

    model_config = ConfigDict(extra="allow")

    known_skus: list[str] = []
    currency_default: str | None = Field(default_factory=lambda: settings.DEFAULT_CURRENCY)
    default_uom: str | None = Field(default_factory=lambda: settings.DEFAULT_UOM)


class ExtractionRequest(BaseModel):
    raw_text: str
    source_hint: SourceHint = Field(default_factory=lambda: SourceHint(settings.DEFAULT_SOURCE_HINT))
    optional_context: ExtractionContext = Field(default_factory=ExtractionContext)

    @field_validator("raw_text")
    @classmethod
    def _raw_text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("raw_text must not be blank")
        return value


def _read_only(self, *args, **kwargs):
    raise TypeError(f"{type(self).__name__} is read-only")


class FrozenDict(dict):
    """Read-only dict. Still a dict, so it compares and serializes like one."""

    __setitem__ = __delitem__ = __ior__ = _read_only
    clear = pop = popitem = setdefault = update = _read_only

    def __reduce__(self):
        return type(self), (dict(self),)

    def __deepcopy__(self, memo):
        return type(self)({key: copy.deepcopy(value, memo) for key, value in self.items()})


class FrozenList(list):
    """Read-only list counterpart of FrozenDict."""

    __setitem__ = __delitem__ = __iadd__ = __imul__ = _read_only
    append = extend = insert = pop = remove = clear = sort = reverse = _read_only

    def __reduce__(self):
        return type(self), (list(self),)

    def __deepcopy__(self, memo):
        return type(self)(copy.deepcopy(value, memo) for value in self)


def freeze(value: Any) -> Any:
    """Recursively convert dicts and lists into their read-only counterparts."""
    if isinstance(value, Mapping):
        return FrozenDict({key: freeze(child) for key, child in value.items()})
    if isinstance(value, (list, tuple)):
        return FrozenList(freeze(child) for child in value)
    return value


def thaw(value: Any) -> Any:
    """Mutable deep copy of a frozen tree, for writing into a form."""
    if isinstance(value, Mapping):
        return {key: thaw(child) for key, child in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(child) for child in value]
    return copy.deepcopy(value)


class ExtractionResult(BaseModel):
    """Candidate record returned by one extraction call.

    Score and unresolved paths are normalized to canonical path strings so
    ``items[00].sku`` and ``items[0].sku`` address the same field. A field
    with no score counts as confidence 0. Every field is stored read-only;
    use ``thaw`` to get an editable copy of a candidate value.
    """

    model_config = ConfigDict(frozen=True)

    extracted_data: dict[str, Any] = Field(default_factory=FrozenDict)
    confidence_scores: dict[str, float] = Field(default_factory=FrozenDict)
    unresolved_fields: list[str] = Field(default_factory=FrozenList)
    warnings: list[str] = Field(default_factory=FrozenList)
    suggestions: list[str] = Field(default_factory=FrozenList)

    @field_validator("confidence_scores")
    @classmethod
    def _normalize_score_paths(cls, scores: dict[str, float]) -> dict[str, float]:
        return FrozenDict({canonical(path): score for path, score in scores.items()})

    @field_validator("unresolved_fields")
    @classmethod
    def _normalize_unresolved_paths(cls, paths: list[str]) -> list[str]:
        return FrozenList(dict.fromkeys(canonical(path) for path in paths))

    @field_validator("extracted_data", "warnings", "suggestions")
    @classmethod
    def _freeze(cls, value: Any) -> Any:
        return freeze(value)

    def confidence_for(self, path: PathLike) -> float:
        return self.confidence_scores.get(canonical(path), 0.0)

    def tier_for(self, path: PathLike) -> ConfidenceTier:
        return classify(self.confidence_for(path))

    def can_apply(self, path: PathLike) -> bool:
        return can_auto_apply(self.confidence_for(path))

    def is_unresolved(self, path: PathLike) -> bool:
        return canonical(path) in self.unresolved_fields

    def candidate_value(self, path: PathLike) -> Any:
        """Value the extraction proposed for ``path``, or NOT_FOUND."""
        return get_value(self.extracted_data, path)


class MergeMode(str, Enum):
    ALL = "all"
    SELECTED = "selected"


class MergeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: MergeMode
    selected_paths: frozenset[str] = frozenset()

    @field_validator("selected_paths")
    @classmethod
    def _normalize_paths(cls, paths: frozenset[str]) -> frozenset[str]:
        return frozenset(canonical(path) for path in paths)

    @model_validator(mode="after")
    def _paths_match_mode(self) -> "MergeRequest":
        if self.mode is MergeMode.SELECTED and not self.selected_paths:
            raise ValueError("selected merge requires at least one path")
        if self.mode is MergeMode.ALL and self.selected_paths:
            raise ValueError("selected_paths are only valid for a selected merge")
        return self

    @classmethod
    def for_all(cls) -> "MergeRequest":
        return cls(mode=MergeMode.ALL)

    @classmethod
    def for_paths(cls, *paths: str) -> "MergeRequest":
        return cls(mode=MergeMode.SELECTED, selected_paths=frozenset(paths))


class MergeReport(BaseModel):
    applied: list[str] = []
    blocked: list[str] = []
    fallback: bool = False


class ReviewRow(BaseModel):
    """One line of the field-by-field review panel."""

    path: str
    value: Any = None
    found: bool
    current: Any = None
    current_found: bool
    confidence: float
    tier: ConfidenceTier
    unresolved: bool
    can_apply: bool


class ReviewPayload(BaseModel):
    form: dict[str, Any] = {}
    result: ExtractionResult


class ApplyFieldPayload(ReviewPayload):
    path: str


class ApplyResponse(BaseModel):
    form: dict[str, Any]
    report: MergeReport
