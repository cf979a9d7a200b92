"""Smart-group evaluation over in-memory paper records."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Sequence

from papershelf.groups.criteria import (
    ByAuthor,
    ByImportance,
    ByKeyword,
    ByPublisher,
    ByReadStatus,
    ByResearchType,
    BySubject,
    ByTag,
    ByYear,
    ByYearRange,
    Criterion,
    Favorites,
    HasPdf,
    NoPdf,
    RecentlyAdded,
    RecentlyAnalyzed,
    ResearchType,
    SmartGroup,
    Unread,
)
from papershelf.models import Paper
from papershelf.utils.dates import format_timestamp, parse_timestamp, utc_now

FAVORITE_IMPORTANCE = 4


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in haystack.lower()


def _within_days(timestamp: str | None, days: int, now: datetime) -> bool:
    moment = parse_timestamp(timestamp)
    if moment is None:
        return False
    return (now - moment).days <= days


def matches_criterion(paper: Paper, criterion: Criterion, *, now: datetime | None = None) -> bool:
    """Evaluate one criterion against one paper."""
    if isinstance(criterion, ByYear):
        return paper.year == criterion.value
    if isinstance(criterion, ByYearRange):
        return criterion.value.start <= paper.year <= criterion.value.end
    if isinstance(criterion, ByAuthor):
        return _contains(paper.author, criterion.value)
    if isinstance(criterion, ByKeyword):
        return _contains(paper.keywords, criterion.value)
    if isinstance(criterion, ByTag):
        wanted = criterion.value.lower()
        return any(tag.lower() == wanted for tag in paper.tags)
    if isinstance(criterion, ByReadStatus):
        return paper.is_read == criterion.value
    if isinstance(criterion, ByImportance):
        return paper.importance == criterion.value
    if isinstance(criterion, ByResearchType):
        return (
            paper.is_qualitative == criterion.value.qualitative
            and paper.is_quantitative == criterion.value.quantitative
        )
    if isinstance(criterion, RecentlyAdded):
        return _within_days(paper.created_at, criterion.value, now or utc_now())
    if isinstance(criterion, RecentlyAnalyzed):
        return _within_days(paper.last_analyzed_at, criterion.value, now or utc_now())
    if isinstance(criterion, ByPublisher):
        return _contains(paper.publisher, criterion.value)
    if isinstance(criterion, BySubject):
        return _contains(paper.subject, criterion.value)
    if isinstance(criterion, NoPdf):
        return not paper.pdf_path
    if isinstance(criterion, HasPdf):
        return bool(paper.pdf_path)
    if isinstance(criterion, Unread):
        return not paper.is_read
    if isinstance(criterion, Favorites):
        return paper.importance >= FAVORITE_IMPORTANCE
    raise TypeError(f"Unsupported smart group criterion: {criterion!r}")


def evaluate(
    papers: Iterable[Paper],
    criteria: Sequence[Criterion],
    match_mode: str | None = "and",
    *,
    now: datetime | None = None,
) -> List[Paper]:
    """Return the papers selected by ``criteria``.

    ``or`` keeps a paper when any criterion holds; every other mode keeps it
    only when all of them hold. An empty criteria list keeps every paper.
    """
    papers = list(papers)
    if not criteria:
        return papers

    now = now or utc_now()
    combine = any if match_mode == "or" else all
    return [
        paper
        for paper in papers
        if combine(matches_criterion(paper, criterion, now=now) for criterion in criteria)
    ]


def predefined_groups(now: datetime | None = None) -> List[SmartGroup]:
    """Build the built-in groups for the current date. They are never stored."""
    now = now or utc_now()
    created_at = format_timestamp(now)
    year = now.year

    def group(group_id: str, name: str, criterion: Criterion, icon: str, color: str) -> SmartGroup:
        return SmartGroup(
            id=group_id,
            name=name,
            criteria=[criterion],
            match_mode="and",
            icon=icon,
            color=color,
            created_at=created_at,
        )

    return [
        group("unread", "Unread Papers", Unread(), "book-open", "#3b82f6"),
        group("favorites", "Favorites", Favorites(), "star", "#eab308"),
        group("recent-week", "Added This Week", RecentlyAdded(value=7), "clock", "#22c55e"),
        group("recent-month", "Added This Month", RecentlyAdded(value=30), "calendar", "#06b6d4"),
        group("this-year", f"Published in {year}", ByYear(value=year), "calendar-days", "#8b5cf6"),
        group("no-pdf", "Missing PDFs", NoPdf(), "file-x", "#ef4444"),
        group(
            "qualitative",
            "Qualitative Research",
            ByResearchType(value=ResearchType(qualitative=True, quantitative=False)),
            "message-square",
            "#f97316",
        ),
        group(
            "quantitative",
            "Quantitative Research",
            ByResearchType(value=ResearchType(qualitative=False, quantitative=True)),
            "bar-chart",
            "#14b8a6",
        ),
        group(
            "mixed-methods",
            "Mixed Methods",
            ByResearchType(value=ResearchType(qualitative=True, quantitative=True)),
            "git-merge",
            "#ec4899",
        ),
    ]
