"""Attachment field shapes and their recursive normalisation to flat strings."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple, Union

import orjson

from civicmap.errors import UnsupportedReferenceError

URL_RE = re.compile(r"https?://[^\s,\"\]]+")
ABSOLUTE_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class UrlText:
    """Text that embeds one or more absolute URLs."""

    text: str


@dataclass(frozen=True)
class PathRef:
    """A single storage object path."""

    path: str


@dataclass(frozen=True)
class JsonArrayString:
    """Text that looks like a JSON array (possibly JSON-encoded twice)."""

    text: str


@dataclass(frozen=True)
class CsvString:
    """Comma separated references."""

    text: str


@dataclass(frozen=True)
class RefList:
    items: Tuple["RawRef", ...]


RawRef = Union[UrlText, PathRef, JsonArrayString, CsvString, RefList]


def _classify_text(text: str, *, allow_json: bool = True) -> RawRef:
    if allow_json and (text.startswith("[") or text.startswith('"[')):
        return JsonArrayString(text)
    if URL_RE.search(text):
        return UrlText(text)
    if "," in text:
        return CsvString(text)
    return PathRef(text)


def classify(value: object) -> RawRef:
    """Map a raw attachment field onto the closed `RawRef` variants."""
    if value is None:
        return RefList(())
    if isinstance(value, (list, tuple)):
        return RefList(tuple(classify(item) for item in value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return RefList(())
        return _classify_text(text)
    raise UnsupportedReferenceError(f"Unsupported attachment value of type {type(value).__name__}")


def _split_csv(text: str) -> List[str]:
    return [segment.strip() for segment in text.split(",") if segment.strip()]


def _normalize_json(text: str) -> List[str]:
    try:
        parsed = orjson.loads(text)
    except orjson.JSONDecodeError:
        parsed = None
    if isinstance(parsed, list):
        return normalize(classify(parsed))
    if isinstance(parsed, str) and parsed.strip() and parsed.strip() != text:
        return normalize(classify(parsed))
    return normalize(_classify_text(text, allow_json=False))


def normalize(ref: RawRef) -> List[str]:
    """Flatten a `RawRef` into an ordered list of non-empty strings."""
    if isinstance(ref, RefList):
        out: List[str] = []
        for item in ref.items:
            out.extend(normalize(item))
        return out
    if isinstance(ref, JsonArrayString):
        return _normalize_json(ref.text)
    if isinstance(ref, UrlText):
        return URL_RE.findall(ref.text)
    if isinstance(ref, CsvString):
        return _split_csv(ref.text)
    if isinstance(ref, PathRef):
        return [ref.path] if ref.path else []
    raise UnsupportedReferenceError(f"Unknown reference variant {ref!r}")


def normalize_value(value: object) -> List[str]:
    """Classify then normalise a raw attachment field."""
    return normalize(classify(value))


def is_absolute_url(value: str) -> bool:
    return bool(ABSOLUTE_URL_RE.match(value))
