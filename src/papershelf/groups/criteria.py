"""Smart-group criteria and group definitions.

Criteria are persisted as JSON in the ``{"type": ..., "value": ...}`` shape,
with unit criteria carrying only ``type``. Each variant is a small frozen
pydantic model and :data:`Criterion` is their discriminated union.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, List, Literal, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from papershelf.errors import ValidationError

LOGGER = logging.getLogger(__name__)


class _CriterionBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ByYear(_CriterionBase):
    type: Literal["byYear"] = "byYear"
    value: int


class YearRange(_CriterionBase):
    start: int
    end: int


class ByYearRange(_CriterionBase):
    type: Literal["byYearRange"] = "byYearRange"
    value: YearRange


class ByAuthor(_CriterionBase):
    type: Literal["byAuthor"] = "byAuthor"
    value: str


class ByKeyword(_CriterionBase):
    type: Literal["byKeyword"] = "byKeyword"
    value: str


class ByTag(_CriterionBase):
    type: Literal["byTag"] = "byTag"
    value: str


class ByReadStatus(_CriterionBase):
    type: Literal["byReadStatus"] = "byReadStatus"
    value: bool


class ByImportance(_CriterionBase):
    type: Literal["byImportance"] = "byImportance"
    value: int


class ResearchType(_CriterionBase):
    qualitative: bool
    quantitative: bool


class ByResearchType(_CriterionBase):
    type: Literal["byResearchType"] = "byResearchType"
    value: ResearchType


class RecentlyAdded(_CriterionBase):
    """Created within the last ``value`` days."""

    type: Literal["recentlyAdded"] = "recentlyAdded"
    value: int


class RecentlyAnalyzed(_CriterionBase):
    """Analyzed within the last ``value`` days."""

    type: Literal["recentlyAnalyzed"] = "recentlyAnalyzed"
    value: int


class ByPublisher(_CriterionBase):
    type: Literal["byPublisher"] = "byPublisher"
    value: str


class BySubject(_CriterionBase):
    type: Literal["bySubject"] = "bySubject"
    value: str


class NoPdf(_CriterionBase):
    type: Literal["noPdf"] = "noPdf"


class HasPdf(_CriterionBase):
    type: Literal["hasPdf"] = "hasPdf"


class Unread(_CriterionBase):
    type: Literal["unread"] = "unread"


class Favorites(_CriterionBase):
    """Importance of 4 or more."""

    type: Literal["favorites"] = "favorites"


Criterion = Annotated[
    Union[
        ByYear,
        ByYearRange,
        ByAuthor,
        ByKeyword,
        ByTag,
        ByReadStatus,
        ByImportance,
        ByResearchType,
        RecentlyAdded,
        RecentlyAnalyzed,
        ByPublisher,
        BySubject,
        NoPdf,
        HasPdf,
        Unread,
        Favorites,
    ],
    Field(discriminator="type"),
]

_CRITERIA_ADAPTER: TypeAdapter[List[Criterion]] = TypeAdapter(List[Criterion])


class SmartGroup(BaseModel):
    """A named set of criteria combined with ``and`` or ``or``."""

    id: str
    name: str
    criteria: List[Criterion] = Field(default_factory=list)
    match_mode: str = "and"
    icon: Optional[str] = None
    color: Optional[str] = None
    created_at: str = ""


class CreateSmartGroupInput(BaseModel):
    name: str = Field(min_length=1)
    criteria: List[Criterion] = Field(default_factory=list)
    match_mode: Literal["and", "or"] = "and"
    icon: Optional[str] = None
    color: Optional[str] = None


def parse_criteria(data: Any) -> List[Criterion]:
    """Validate criteria given as a JSON string or as decoded Python data.

    Raises:
        ValidationError: the data is not a list of known criteria.
    """
    try:
        if isinstance(data, (str, bytes)):
            return _CRITERIA_ADAPTER.validate_json(data)
        return _CRITERIA_ADAPTER.validate_python(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid smart group criteria: {exc}") from exc


def load_criteria(raw: str) -> List[Criterion]:
    """Decode persisted criteria, treating unreadable data as an empty list."""
    try:
        return parse_criteria(raw)
    except ValidationError as exc:
        LOGGER.warning("Ignoring malformed smart group criteria: %s", exc)
        return []


def dump_criteria(criteria: List[Criterion]) -> str:
    return _CRITERIA_ADAPTER.dump_json(criteria).decode("utf-8")
