"""Summary counts for the analytics panel."""
from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Tuple

from civicmap.geo.resolver import split_segments
from civicmap.storage.models import PRIORITIES, Issue


def primary_place(location_text: str) -> str:
    """First comma segment, title-cased, or `Unknown`."""
    segments = split_segments(location_text or "")
    return segments[0].title() if segments else "Unknown"


def summarise(issues: Iterable[Issue], *, top_locations: int = 5) -> Dict[str, object]:
    items = list(issues)
    by_priority = {priority: 0 for priority in PRIORITIES}
    by_category: Counter = Counter()
    by_place: Counter = Counter()
    for issue in items:
        by_priority[issue.priority] = by_priority.get(issue.priority, 0) + 1
        by_category[issue.category] += 1
        by_place[primary_place(issue.location_text)] += 1
    locations: List[Tuple[str, int]] = sorted(by_place.items(), key=lambda kv: (-kv[1], kv[0]))[:top_locations]
    average = sum(issue.urgency_score for issue in items) / len(items) if items else 0.0
    return {
        "total": len(items),
        "by_priority": by_priority,
        "by_category": dict(sorted(by_category.items())),
        "top_locations": [{"name": name, "count": count} for name, count in locations],
        "average_urgency": round(average, 1),
    }
