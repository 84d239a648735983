"""Issue list filtering for the dashboard sidebar."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from civicmap.storage.models import Issue

_RANGES = {
    "today": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


class IssueFilters(BaseModel):
    """Sidebar filter state; `all` and blank values disable a filter."""

    search: str = ""
    category: str = "all"
    status: str = "all"
    location: str = "all"
    date_range: str = Field(default="all", pattern=r"^(all|today|week|month)$")

    @property
    def active_count(self) -> int:
        values = (self.search, self.category, self.status, self.location, self.date_range)
        return sum(1 for value in values if value not in ("", "all"))

    def matches(self, issue: Issue, *, now: Optional[datetime] = None) -> bool:
        needle = self.search.strip().lower()
        if needle and not any(
            needle in field.lower() for field in (issue.title, issue.description, issue.location_text)
        ):
            return False
        if self.category != "all" and issue.category != self.category:
            return False
        if self.status != "all" and issue.priority != self.status:
            return False
        if self.location != "all" and self.location not in issue.location_text:
            return False
        if self.date_range != "all":
            if issue.created_at is None:
                return False
            reference = now or datetime.now(timezone.utc)
            if issue.created_at < reference - _RANGES[self.date_range]:
                return False
        return True

    def apply(self, issues: Iterable[Issue], *, now: Optional[datetime] = None) -> List[Issue]:
        return [issue for issue in issues if self.matches(issue, now=now)]
