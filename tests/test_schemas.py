import pytest

from activity_tracker.errors import ValidationError
from activity_tracker.models import RuleCondition, RuleType
from activity_tracker.schemas import parse_records, parse_rule_changes, parse_rule_fields


def test_parse_camel_case_records(raw_payloads):
    records = parse_records(raw_payloads)

    assert len(records) == 4
    chrome = records[2]
    assert chrome.activity_id == 2
    assert chrome.owner_bundle_id == "com.google.Chrome"
    assert chrome.url == "https://github.com/pulls"
    assert records[0].url is None
    assert records[0].rating is None


def test_parse_snake_case_records():
    payload = {
        "platform": "linux",
        "activity_id": 9,
        "title": "vim",
        "owner_path": "/usr/bin/vim",
        "owner_process_id": 1,
        "owner_name": "vim",
        "timestamp": 0,
        "duration": 3,
    }

    (record,) = parse_records([payload])

    assert record.owner_name == "vim"


@pytest.mark.parametrize(
    ("field", "value"),
    [("duration", -1), ("timestamp", -5), ("activityId", "abc"), ("ownerName", None)],
)
def test_malformed_records_are_rejected(raw_payloads, field, value):
    raw_payloads[1][field] = value

    with pytest.raises(ValidationError, match="record 1"):
        parse_records(raw_payloads)


def test_missing_field_is_reported(raw_payloads):
    del raw_payloads[0]["ownerPath"]

    with pytest.raises(ValidationError, match="ownerPath"):
        parse_records(raw_payloads)


def test_parse_rule_fields():
    fields = parse_rule_fields(
        {"name": "Long", "ruleType": "duration", "condition": ">=", "value": "1500", "rating": 1}
    )

    assert fields.rule_type is RuleType.DURATION
    assert fields.condition is RuleCondition.GREATER_EQUAL
    assert fields.active is True


@pytest.mark.parametrize(
    "data",
    [
        {"name": "x", "ruleType": "window", "condition": "=", "value": "a", "rating": 1},
        {"name": "x", "ruleType": "title", "condition": "matches", "value": "a", "rating": 1},
        {"name": "x", "ruleType": "title", "condition": "=", "value": "", "rating": 1},
        {"name": "x", "ruleType": "title", "condition": "=", "value": "a", "rating": -1},
        {"name": "x", "ruleType": "duration", "condition": "startsWith", "value": "1", "rating": 1},
        {"ruleType": "title", "condition": "=", "value": "a", "rating": 1},
    ],
)
def test_invalid_rule_fields(data):
    with pytest.raises(ValidationError):
        parse_rule_fields(data)


def test_rule_changes_track_only_given_fields():
    changes = parse_rule_changes({"rating": 0})

    assert changes.model_dump(exclude_unset=True) == {"rating": 0}


def test_missing_title_is_rejected(raw_payloads):
    del raw_payloads[2]["title"]

    with pytest.raises(ValidationError, match="record 2: title"):
        parse_records(raw_payloads)


def test_rule_changes_reject_null_for_required_fields():
    with pytest.raises(ValidationError, match="name cannot be null"):
        parse_rule_changes({"name": None})


def test_rule_changes_keep_explicit_null_description():
    changes = parse_rule_changes({"description": None})

    assert changes.model_dump(exclude_unset=True) == {"description": None}
