import json
from datetime import timedelta

import pytest

from activity_tracker.categories import DEFAULT_CATEGORY_RULES, classify
from activity_tracker.config import EngineSettings
from activity_tracker.errors import ValidationError

from conftest import make_record


def test_defaults():
    settings = EngineSettings()

    assert settings.merge_gap_ms == 900_000
    assert settings.report_limit == 7
    assert settings.category_rules == list(DEFAULT_CATEGORY_RULES)


def test_missing_file_gives_defaults(tmp_path):
    assert EngineSettings.load(tmp_path / "absent.json") == EngineSettings()


def test_load_custom_rules(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "mergeGapMinutes": 5,
                "reportLimit": None,
                "categoryRules": [
                    {"category": ["Work", "Editor"], "matches": {"application": "code"}}
                ],
            }
        ),
        encoding="utf-8",
    )

    settings = EngineSettings.load(path)

    assert settings.merge_gap == timedelta(minutes=5)
    assert settings.report_limit is None
    rules = settings.category_rules
    assert len(rules) == len(DEFAULT_CATEGORY_RULES) + 1
    assert classify(make_record(owner_name="Code"), rules) == ["Work", "Editor"]


@pytest.mark.parametrize(
    "content",
    ["not json", "[]", json.dumps({"mergeGapMinutes": -1}), json.dumps({"categoryRules": [{}]})],
)
def test_invalid_settings(tmp_path, content):
    path = tmp_path / "settings.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValidationError):
        EngineSettings.load(path)
