"""Pydantic models for issue records."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as dateparser
from pydantic import BaseModel, Field, field_validator

from civicmap.geo.lookup import GeoPoint

PRIORITIES = ("urgent", "high", "medium", "low")
URGENCY_SCORES = {"urgent": 90, "high": 75, "medium": 50, "low": 25}
ISSUE_COLUMNS = (
    "id",
    "title",
    "description",
    "category",
    "location_text",
    "priority",
    "status",
    "created_at",
    "reporter_name",
    "photos",
    "latitude",
    "longitude",
)


class Issue(BaseModel):
    """Canonical representation of a reported civic issue."""

    id: int
    title: str = ""
    description: str = ""
    category: str = "Other"
    location_text: str = ""
    priority: str = Field(default="low", pattern=r"^(urgent|high|medium|low)$")
    status: str = "open"
    created_at: Optional[datetime] = None
    reporter_name: str = "Anonymous"
    photos: List[Any] = Field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created_at(cls, value: Any) -> Optional[datetime]:
        if value in (None, ""):
            return None
        if isinstance(value, datetime):
            dt = value
        else:
            dt = dateparser.isoparse(str(value))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    @property
    def urgency_score(self) -> int:
        return URGENCY_SCORES.get(self.priority, 25)

    @property
    def stored_coordinate(self) -> Optional[GeoPoint]:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPoint(self.latitude, self.longitude)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Issue":
        """Map a raw store row, applying the dashboard's display defaults."""
        photos = row.get("photos")
        if isinstance(photos, list):
            photo_list = photos
        elif photos:
            photo_list = [photos]
        else:
            photo_list = []
        priority = str(row.get("priority") or "low").lower()
        return cls(
            id=int(row["id"]),
            title=row.get("title") or "",
            description=row.get("description") or "",
            category=row.get("category") or "Other",
            location_text=row.get("location_text") or "",
            priority=priority if priority in PRIORITIES else "low",
            status=row.get("status") or "open",
            created_at=row.get("created_at"),
            reporter_name=row.get("reporter_name") or "Anonymous",
            photos=photo_list,
            latitude=row.get("latitude"),
            longitude=row.get("longitude"),
        )


class NewIssue(BaseModel):
    """Payload for inserting a freshly reported issue."""

    title: str = Field(min_length=1)
    description: str = ""
    category: Optional[str] = None
    location_text: str = ""
    priority: Optional[str] = Field(default=None, pattern=r"^(urgent|high|medium|low)$")
    contact_info: Optional[str] = None
    reporter_id: Optional[str] = None
    reporter_name: Optional[str] = None
    status: str = "open"
    photos: Optional[List[str]] = None


class Viewer(BaseModel):
    """The signed-in user as supplied by the identity service."""

    user_id: str
    role: str = "citizen"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
