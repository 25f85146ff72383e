"""
HTTP layer. Run from backend: python -m pytest tests/test_app.py -v
"""
import sys
import os
import json
import inspect

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient

from app import app, extract_stream_endpoint


@pytest.fixture(scope="module")
def client():
    return TestClient(app)


THREE_ADJUSTABLES = {"additions": [
    {"ingredient": "GABA", "amount": 100},
    {"ingredient": "Quercetin", "amount": 100},
    {"ingredient": "Rosemary", "amount": 100},
]}


def test_health(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_catalog_info(client):
    body = client.get("/catalog").json()
    assert body["entries"] == body["bundles"] + body["adjustable"]


@pytest.mark.parametrize("name,expected", [
    ("garlic", "Garlic"),
    ("CoQ10", "CoEnzyme Q10"),
    ("MG/K", "MG/K"),
])
def test_catalog_entry(client, name, expected):
    r = client.get(f"/catalog/{name}")
    assert r.status_code == 200
    assert r.json()["name"] == expected


def test_catalog_entry_unknown(client):
    assert client.get("/catalog/Omage-3").status_code == 404


class TestValidate:
    def test_over_budget(self, client):
        r = client.post("/formula/validate", json={
            "bases": [{"ingredient": "Beta Max", "amount": 5000}], "targetCapsules": 6,
        })
        assert r.status_code == 200
        body = r.json()
        assert body["valid"] is False
        assert len(body["errors"]) == 1
        assert body["totalMg"] == 5000
        assert body["budget"] == {"capsuleCount": 6, "maxDosageMg": 3300, "maxWithToleranceMg": 3465}

    def test_bad_payload_is_422(self, client):
        r = client.post("/formula/validate", json={"foo": 1})
        assert r.status_code == 422
        assert "no bases or additions" in r.json()["detail"]


def test_expand(client):
    body = client.post("/formula/expand", json=THREE_ADJUSTABLES).json()
    assert len(body["expansion"]["addedIngredients"]) == 5
    assert body["expansion"]["expanded"] is True
    assert body["formula"]["totalMg"] == 4760


def test_screen(client):
    r = client.post("/formula/screen", json={
        "formula": {"additions": [{"ingredient": "garlic powder", "amount": 150}]},
        "medications": ["Warfarin"],
    })
    assert r.status_code == 200
    assert len(r.json()["warnings"]) == 1
    assert r.json()["combinations"] == []


def test_screen_combinations_without_medications(client):
    r = client.post("/formula/screen", json={
        "formula": {"additions": [{"ingredient": "Cinnamon", "amount": 500}, {"ingredient": "Chaga", "amount": 1000}]},
    })
    body = r.json()
    assert body["warnings"] == []
    assert len(body["combinations"]) == 1
    assert "blood sugar" in body["combinations"][0]


class TestExtract:
    TEXT = "Here is your formula.\n```json\n" + json.dumps(THREE_ADJUSTABLES) + "\n```"

    def test_extract(self, client):
        r = client.post("/formula/extract", json={"text": self.TEXT, "user_message": "I'll take 12 capsules"})
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ACCEPTED"
        assert body["formula"]["targetCapsules"] == 12
        assert body["events"][-1]["type"] == "formula_extracted"
        assert body["displayText"] == "Here is your formula."
        assert body["summary"].startswith("Current formula (12 capsules/day")

    def test_extract_no_formula(self, client):
        body = client.post("/formula/extract", json={"text": "How are you sleeping?"}).json()
        assert body["status"] == "NO_FORMULA"
        assert body["events"] == []

    def test_extract_stream(self, client):
        r = client.post("/formula/extract/stream", json={"text": self.TEXT})
        assert r.status_code == 200
        events = [json.loads(line[len("data: "):]) for line in r.text.splitlines() if line.startswith("data: ")]
        assert [e["type"] for e in events][-2:] == ["formula_extracted", "done"]
        assert events[-1]["status"] == "ACCEPTED"

    def test_stream_handler_runs_off_the_event_loop(self):
        # Extraction is synchronous; a plain def handler runs in the threadpool
        assert not inspect.iscoroutinefunction(extract_stream_endpoint)
