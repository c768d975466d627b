"""
End-to-end tests for the HTTP surface: validate, create, start, and poll.
"""
import asyncio
import threading

import httpx

from tracker_import.api.routers import imports as imports_router
from tracker_import.domain.imports.validation import validate_csv
from tracker_import.main import app


PROJECT_MAPPING = {"name": "Name", "key": "Key"}


def _create_job(client, csv_data, entity_type="project", mapping=PROJECT_MAPPING):
    response = client.post(
        "/import-jobs",
        json={
            "entity_type": entity_type,
            "csv_data": csv_data,
            "field_mapping": mapping,
            "file_name": "import.csv",
        },
    )
    assert response.status_code == 201
    return response.json()["job"]


def test_validate_reports_duplicates_and_preview(client):
    response = client.post(
        "/imports/validate",
        json={
            "entity_type": "project",
            "csv_data": "Name,Key\nCore Again,CORE\nNew,NEW1",
            "field_mapping": PROJECT_MAPPING,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is False
    assert body["total_rows"] == 2
    assert body["valid_rows"] == 1
    assert body["errors"] == [
        {
            "row": 2,
            "field": "key",
            "kind": "duplicate",
            "message": 'Project key "CORE" already exists',
            "original_value": "CORE",
        }
    ]
    assert body["preview"][1] == {"name": "New", "key": "NEW1"}
    assert body["headers"] == ["Name", "Key"]


def test_validate_unknown_entity_type_is_request_error(client):
    response = client.post(
        "/imports/validate",
        json={"entity_type": "epic", "csv_data": "Name\nx", "field_mapping": {}},
    )
    assert response.status_code == 400


def test_entity_fields(client):
    response = client.get("/imports/fields/user")
    assert response.status_code == 200
    assert response.json()["required"] == ["email"]

    assert client.get("/imports/fields/epic").status_code == 404


def test_import_job_lifecycle(client):
    job = _create_job(client, "Name,Key\nAlpha,ALPHA\nCore Again,CORE\nBeta,BETA")
    assert job["status"] == "pending"
    assert job["total_records"] == 3
    assert "csv_data" not in job

    response = client.post(f"/import-jobs/{job['id']}/start")
    assert response.status_code == 202
    assert response.json() == {"accepted": True, "job_id": job["id"], "message": "Import started"}

    # TestClient runs background tasks before returning the response.
    status = client.get(f"/import-jobs/{job['id']}").json()
    assert status["job"]["status"] == "completed"
    assert status["job"]["successful_records"] == 2
    assert status["job"]["failed_records"] == 1
    assert status["error_count"] == 1
    assert status["errors"][0]["row_number"] == 3
    assert status["errors"][0]["error_type"] == "system"
    assert status["limit"] == 100


def test_starting_twice_conflicts(client):
    job = _create_job(client, "Name,Key\nAlpha,ALPHA")
    assert client.post(f"/import-jobs/{job['id']}/start").status_code == 202
    assert client.post(f"/import-jobs/{job['id']}/start").status_code == 409


def test_unknown_entity_type_fails_job(client):
    job = _create_job(client, "Name\nx", entity_type="epic", mapping={"name": "Name"})
    assert client.post(f"/import-jobs/{job['id']}/start").status_code == 202

    status = client.get(f"/import-jobs/{job['id']}").json()
    assert status["job"]["status"] == "failed"
    assert status["job"]["processed_records"] == 0
    assert "epic" in status["job"]["error_message"]


def test_status_limit_is_clamped(client):
    job = _create_job(client, "Name,Key\nAlpha,ALPHA")
    body = client.get(f"/import-jobs/{job['id']}", params={"limit": 1000}).json()
    assert body["limit"] == 100


def test_missing_job_returns_404(client):
    assert client.get("/import-jobs/missing").status_code == 404
    assert client.post("/import-jobs/missing/start").status_code == 404


def test_list_import_jobs(client):
    _create_job(client, "Name,Key\nAlpha,ALPHA")
    _create_job(client, "Name,Key\nBeta,BETA")

    body = client.get("/import-jobs").json()
    assert body["total_count"] == 2
    assert len(body["jobs"]) == 2


def test_list_import_jobs_limit_is_clamped(client):
    _create_job(client, "Name,Key\nAlpha,ALPHA")
    _create_job(client, "Name,Key\nBeta,BETA")

    body = client.get("/import-jobs", params={"limit": -1, "offset": -5}).json()
    assert (body["limit"], body["offset"]) == (0, 0)
    assert body["jobs"] == []
    assert body["total_count"] == 2

    body = client.get("/import-jobs", params={"limit": 10_000}).json()
    assert body["limit"] == 50


def test_validation_does_not_block_other_requests(client, monkeypatch):
    entered = threading.Event()
    released = threading.Event()
    released_in_time = []

    def slow_validate_csv(*args, **kwargs):
        entered.set()
        released_in_time.append(released.wait(timeout=5))
        return validate_csv(*args, **kwargs)

    monkeypatch.setattr(imports_router, "validate_csv", slow_validate_csv)

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            validating = asyncio.ensure_future(
                http.post(
                    "/imports/validate",
                    json={"entity_type": "project", "csv_data": "Name,Key\nAlpha,ALPHA", "field_mapping": PROJECT_MAPPING},
                )
            )
            while not entered.is_set():
                await asyncio.sleep(0.01)
            health = await http.get("/health")
            released.set()
            return health, await validating

    health, validated = asyncio.run(scenario())

    assert health.status_code == 200
    assert validated.status_code == 200
    assert released_in_time == [True]


def test_download_template(client):
    response = client.get("/imports/templates/project", params={"jira_headers": True})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="project_template_jira_format_with_examples.csv"' in response.headers["content-disposition"]
    lines = response.text.split("\n")
    assert lines[0] == "Project Name,Project Key,Description,Lead,Project Type,Template"
    assert len(lines) == 4


def test_download_empty_template(client):
    response = client.get("/imports/templates/user", params={"include_examples": False})
    assert response.text == "email,display_name,department,job_title,location"

    assert client.get("/imports/templates/epic").status_code == 404


def test_auto_map_from_csv_headers(client):
    response = client.post(
        "/imports/auto-map",
        json={"entity_type": "work_item", "csv_data": "Summary,Issue Type,Project,Sprint\nFix,Bug,CORE,12"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "entity_type": "work_item",
        "field_mapping": {"summary": "Summary", "issue_type": "Issue Type", "project_key": "Project"},
        "unmapped_headers": ["Sprint"],
    }


def test_auto_map_unknown_entity_type(client):
    response = client.post("/imports/auto-map", json={"entity_type": "epic", "headers": ["Summary"]})
    assert response.status_code == 400
