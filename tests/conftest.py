from __future__ import annotations

import pytest

from activity_tracker.models import ActivityRecord


def make_record(
    activity_id: int = 1,
    timestamp: int = 0,
    duration: int = 1,
    *,
    title: str = "Test Window",
    owner_name: str = "Test App",
    url: str | None = None,
    rating: int | None = None,
) -> ActivityRecord:
    return ActivityRecord(
        platform="darwin",
        activity_id=activity_id,
        title=title,
        owner_path=f"/Applications/{owner_name}.app",
        owner_process_id=100 + activity_id,
        owner_name=owner_name,
        timestamp=timestamp,
        duration=duration,
        url=url,
        rating=rating,
    )


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def raw_payloads():
    """Capture payloads as the desktop collector sends them."""
    return [
        {
            "platform": "darwin",
            "activityId": 1,
            "title": "README.md - repo",
            "ownerPath": "/Applications/Code.app",
            "ownerProcessId": 10,
            "ownerName": "Code",
            "timestamp": 1_000,
            "duration": 30,
        },
        {
            "platform": "darwin",
            "activityId": 1,
            "title": "cli.py - repo",
            "ownerPath": "/Applications/Code.app",
            "ownerProcessId": 10,
            "ownerName": "Code",
            "timestamp": 61_000,
            "duration": 30,
        },
        {
            "platform": "darwin",
            "activityId": 2,
            "title": "Pull requests",
            "ownerPath": "/Applications/Google Chrome.app",
            "ownerProcessId": 20,
            "ownerBundleId": "com.google.Chrome",
            "ownerName": "Google Chrome",
            "url": "https://github.com/pulls",
            "timestamp": 121_000,
            "duration": 20,
        },
        {
            "platform": "darwin",
            "activityId": 3,
            "title": "Home",
            "ownerPath": "/Applications/Google Chrome.app",
            "ownerProcessId": 20,
            "ownerName": "Google Chrome",
            "url": "https://www.youtube.com/watch?v=abc",
            "timestamp": 141_000,
            "duration": 10,
        },
    ]
