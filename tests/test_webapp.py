import pytest
from fastapi.testclient import TestClient

from activity_tracker.config import EngineSettings
from activity_tracker.webapp import create_app


@pytest.fixture
def client(tmp_path):
    app = create_app(db_path=tmp_path / "rules.sqlite3", settings=EngineSettings())
    with TestClient(app) as test_client:
        yield test_client


RULE = {
    "name": "Video",
    "ruleType": "domain",
    "condition": "contains",
    "value": "youtube",
    "rating": 0,
}


def test_status(client, tmp_path):
    body = client.get("/api/status").json()

    assert body["database_path"] == str(tmp_path / "rules.sqlite3")
    assert body["merge_gap_minutes"] == 15.0


def test_merge_endpoint(client, raw_payloads):
    response = client.post("/api/merge", json={"records": raw_payloads})

    assert response.status_code == 200
    body = response.json()
    assert [record["activityId"] for record in body["records"]] == [1, 2, 3]
    assert body["records"][0]["duration"] == 60
    assert body["total_duration"] == 90


def test_merge_rejects_malformed_records(client, raw_payloads):
    raw_payloads[0]["duration"] = -3

    response = client.post("/api/merge", json={"records": raw_payloads})

    assert response.status_code == 422


def test_report_endpoint(client, raw_payloads):
    response = client.post(
        "/api/reports/domain",
        json={"records": raw_payloads, "start": 0, "end": 10_000_000},
    )

    assert response.status_code == 200
    reports = response.json()["reports"]
    assert [item["domain"] for item in reports] == ["github.com", "www.youtube.com"]
    assert reports[0]["percentage"] == pytest.approx(200 / 3)


def test_report_rejects_inverted_window(client, raw_payloads):
    response = client.post(
        "/api/reports/application", json={"records": raw_payloads, "start": 10, "end": 5}
    )
    assert response.status_code == 400


def test_report_rejects_unknown_dimension(client, raw_payloads):
    response = client.post(
        "/api/reports/window", json={"records": raw_payloads, "start": 0, "end": 5}
    )
    assert response.status_code == 422


def test_categories_endpoint(client, raw_payloads):
    response = client.post("/api/categories", json={"records": raw_payloads})

    categories = response.json()["categories"]
    assert [node["category"] for node in categories] == [["Uncategorized"], ["Work"], ["Media"]]
    assert sum(node["percentage"] for node in categories) == pytest.approx(100)


def test_rule_lifecycle(client, raw_payloads):
    created = client.post("/api/rules", json={"rule": RULE, "activities": raw_payloads})
    assert created.status_code == 200
    body = created.json()
    rule_id = body["rule"]["id"]
    assert [update["timestamp"] for update in body["ratings"]["updated"]] == [141_000]

    listed = client.get("/api/rules").json()["rules"]
    assert [rule["id"] for rule in listed] == [rule_id]

    conflict = client.patch(f"/api/rules/{rule_id}", json={"changes": {"rating": 1}})
    assert conflict.status_code == 409

    updated = client.patch(
        f"/api/rules/{rule_id}",
        json={
            "changes": {"rating": 1},
            "activities": raw_payloads,
            "confirmation": {"applyToAll": True},
        },
    )
    assert updated.status_code == 200
    assert updated.json()["rule"]["rating"] == 1
    assert updated.json()["ratings"]["updated"] == [
        {"timestamp": 141_000, "rating": 1, "ruleId": rule_id}
    ]

    applied = client.post(f"/api/rules/{rule_id}/apply", json={"activities": raw_payloads})
    assert applied.json()["failed"] == []

    assert client.delete(f"/api/rules/{rule_id}").status_code == 200
    assert client.delete(f"/api/rules/{rule_id}").status_code == 404


def test_unknown_rule(client):
    response = client.patch("/api/rules/missing", json={"changes": {"name": "x"}})
    assert response.status_code == 404
    response = client.post("/api/rules/missing/apply", json={"activities": []})
    assert response.status_code == 404


def test_invalid_rule_payload(client):
    response = client.post("/api/rules", json={"rule": {**RULE, "condition": ">"}})
    assert response.status_code == 422


def test_invalid_rule_update(client):
    rule_id = client.post("/api/rules", json={"rule": RULE}).json()["rule"]["id"]

    response = client.patch(f"/api/rules/{rule_id}", json={"changes": {"ruleType": "duration"}})

    assert response.status_code == 400
