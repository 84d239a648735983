#!/usr/bin/env python
"""Write a demo issues file usable with `civicmap layout --input`."""
from __future__ import annotations

import argparse
from pathlib import Path

import orjson
from dotenv import load_dotenv

DEMO_ISSUES = [
    {
        "id": 101,
        "title": "Overflowing drain near bus stand",
        "category": "Sanitation",
        "location_text": "Bus Stand Road, Gokak, Karnataka",
        "priority": "urgent",
        "created_at": "2026-10-17T09:30:00+05:30",
        "reporter_name": "Demo Citizen",
        "photos": '["issue-photos/demo/drain.jpg"]',
    },
    {
        "id": 102,
        "title": "Streetlight not working",
        "category": "Electricity",
        "location_text": "North Ward, Belagavi",
        "priority": "high",
        "created_at": "2026-10-15T20:05:00+05:30",
        "reporter_name": "Demo Citizen",
        "photos": "demo/light-1.jpg, demo/light-2.jpg",
    },
    {
        "id": 103,
        "title": "Garbage dumped in park",
        "category": "Sanitation",
        "location_text": "Gandhi Park",
        "priority": "medium",
        "created_at": "2026-10-12T07:45:00+05:30",
        "reporter_name": None,
        "photos": None,
    },
    {
        "id": 104,
        "title": "Pothole on highway",
        "category": "Roads",
        "location_text": "",
        "priority": "low",
        "created_at": "2026-10-01T11:00:00+05:30",
        "reporter_name": "Demo Citizen",
        "photos": ["https://images.example.org/pothole.jpg"],
    },
]


def seed_issues(path: Path) -> None:
    """Write the demo rows as a JSON list, replacing any existing file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(DEMO_ISSUES, option=orjson.OPT_INDENT_2))


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Write demo issue rows to a JSON file")
    parser.add_argument(
        "--path",
        type=Path,
        default=Path("data/demo_issues.json"),
        help="Destination JSON file",
    )
    args = parser.parse_args()
    seed_issues(args.path)


if __name__ == "__main__":
    main()
