import json

import pytest
from fastapi.testclient import TestClient

from sheetfilter import main as main_mod
from sheetfilter.config import settings
from sheetfilter.main import app
from sheetfilter.responses import DataResponse

TEST_DATA = [
    {f"col{j}": f"cell({i},{j})" for j in range(4)}
    for i in range(50)
]

TEST_SINGLE_SHEET = {
    "offset": 0,
    "limit": len(TEST_DATA),
    "total": len(TEST_DATA),
    "data": TEST_DATA,
}


def _sheet_response(payload=TEST_SINGLE_SHEET) -> DataResponse:
    return DataResponse(
        body=json.dumps(payload).encode("utf-8"),
        headers={"content-type": "application/json"},
    )


@pytest.fixture
def fetched(monkeypatch):
    calls = []

    def _fake_fetch(bucket_id, key):
        calls.append((bucket_id, key))
        return _sheet_response()

    monkeypatch.setattr(main_mod, "fetch_s3", _fake_fetch)
    return calls


def _client() -> TestClient:
    return TestClient(app)


def test_health_endpoint_returns_ok():
    with _client() as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_missing_content_bus_id_is_400(fetched):
    with _client() as client:
        response = client.get("/index.json", params={"limit": "1"})

    assert response.status_code == 400
    assert response.headers["x-error"] == "missing contentBusId"
    assert fetched == []


def test_non_json_suffix_is_400(fetched):
    with _client() as client:
        response = client.get("/index.md", params={"contentBusId": "foobar", "limit": "1"})

    assert response.status_code == 400
    assert response.headers["x-error"] == "only json resources supported."


def test_missing_filter_params_is_400(fetched):
    with _client() as client:
        response = client.get("/index.json", params={"contentBusId": "foobar"})

    assert response.status_code == 400
    assert response.headers["x-error"] == "no filter params specified. use direct access."
    assert fetched == []


def test_fetches_correct_content(fetched):
    with _client() as client:
        response = client.get(
            "/index.json",
            params={
                "contentBusId": "foobar",
                "contentBusPartition": "preview",
                "limit": "10",
                "offset": "5",
            },
        )

    assert fetched == [("helix-content-bus", "foobar/preview/index.json")]
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {
        ":type": "sheet",
        "offset": 5,
        "limit": 10,
        "total": len(TEST_DATA),
        "data": TEST_DATA[5:15],
    }


def test_partition_defaults_to_live(fetched):
    with _client() as client:
        response = client.get(
            "/nested/path/data.json", params={"contentBusId": "foobar", "offset": "0"}
        )

    assert response.status_code == 200
    assert fetched == [("helix-content-bus", "foobar/live/nested/path/data.json")]


def test_fetch_error_is_passed_through(monkeypatch):
    monkeypatch.setattr(main_mod, "fetch_s3", lambda bucket_id, key: DataResponse(status=404))

    with _client() as client:
        response = client.get("/index.json", params={"contentBusId": "foobar", "limit": "10"})

    assert response.status_code == 404
    assert response.content == b""


def test_repeated_sheet_params(monkeypatch):
    multi = {
        ":names": ["sheet1", "sheet2", "sheet3"],
        "sheet1": TEST_SINGLE_SHEET,
        "sheet2": TEST_SINGLE_SHEET,
        "sheet3": TEST_SINGLE_SHEET,
    }
    monkeypatch.setattr(main_mod, "fetch_s3", lambda bucket_id, key: _sheet_response(multi))

    with _client() as client:
        response = client.get(
            "/index.json",
            params=[("contentBusId", "foobar"), ("sheet", "sheet3"), ("sheet", "sheet1"), ("limit", "2")],
        )

    assert response.status_code == 200
    body = response.json()
    assert body[":type"] == "multi-sheet"
    assert body[":names"] == ["sheet1", "sheet3"]
    assert body["sheet1"]["data"] == TEST_DATA[:2]


def test_unknown_sheet_is_404(monkeypatch):
    multi = {":names": ["sheet1"], "sheet1": TEST_SINGLE_SHEET}
    monkeypatch.setattr(main_mod, "fetch_s3", lambda bucket_id, key: _sheet_response(multi))

    with _client() as client:
        response = client.get("/index.json", params={"contentBusId": "foobar", "sheet": "foo"})

    assert response.status_code == 404
    assert response.headers["x-error"] == "filtered result does not contain selected sheet(s): foo"


def test_malformed_limit_is_rejected(fetched):
    with _client() as client:
        response = client.get("/index.json", params={"contentBusId": "foobar", "limit": "ten"})

    assert response.status_code == 422
    assert fetched == []


def test_header_metadata_mode(fetched):
    previous = settings.DATA_METADATA
    settings.DATA_METADATA = "headers"
    try:
        with _client() as client:
            response = client.get("/index.json", params={"contentBusId": "foobar", "limit": "1"})
    finally:
        settings.DATA_METADATA = previous

    assert response.status_code == 200
    assert response.headers["x-helix-data-type"] == "sheet"
    assert ":type" not in response.json()


def test_metrics_endpoint(fetched):
    with _client() as client:
        client.get("/index.json", params={"contentBusId": "foobar", "limit": "1"})
        response = client.get("/metrics")

    assert response.status_code == 200
    assert b"sheetfilter_requests_total" in response.content


def test_metrics_label_filter_route_once(fetched):
    with _client() as client:
        for i in range(20):
            client.get(f"/doc{i}.json", params={"contentBusId": "foobar", "limit": "1"})
        response = client.get("/metrics")

    text = response.text
    assert 'path="/{suffix:path}"' in text
    assert 'path="/doc3.json"' not in text
