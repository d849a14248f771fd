"""
Jobs API Tests
==============
HTTP surface of the job service: status codes, payload shapes and the
domain-error mapping. The service is swapped for one wired to mocks.
"""
import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from cloneforge.api.deps import get_job_service
from cloneforge.core.constants import JobStatus
from cloneforge.models.job import Job, JobInput
from cloneforge.services.job_queue import JobQueue
from cloneforge.services.job_service import JobService
from cloneforge.state.control import ControlChannel
from cloneforge.state.registry import JobRegistry
from main import app

from conftest import make_collaborators


def _make_service(api_key="sk-test"):
    return JobService(
        JobRegistry(),
        ControlChannel(),
        JobQueue(),
        collaborator_factory=MagicMock(side_effect=lambda *args: make_collaborators(scores=(95,))),
        default_api_key=api_key,
        poll_interval=0.01,
        cancel_grace_seconds=1.0,
    )


@pytest.fixture
def service():
    return _make_service()


@pytest.fixture
def client(service):
    app.dependency_overrides[get_job_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _wait_for_status(client, job_id, status, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        body = client.get(f"/api/jobs/{job_id}").json()
        if body["status"] == status:
            return body
        time.sleep(0.02)
    raise AssertionError(f"Job {job_id} never reached {status}")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_and_poll_job(client):
    response = client.post("/api/jobs", json={"target_name": "Notion", "description": "Notes app"})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["job_id"].startswith("job_")

    job = _wait_for_status(client, body["job_id"], "complete")
    assert job["iteration_count"] == 1
    assert len(job["iterations"]) == 1
    assert job["analysis"]["name"] == "Notion"
    assert job["parity"]["kind"] == "pre_deploy"

    listed = client.get("/api/jobs").json()
    assert [j["id"] for j in listed] == [body["job_id"]]


def test_create_without_name_is_400(client):
    response = client.post("/api/jobs", json={"description": "no name"})
    assert response.status_code == 400
    assert "target_name" in response.json()["detail"]


def test_create_without_api_key_is_400():
    service = _make_service(api_key=None)
    app.dependency_overrides[get_job_service] = lambda: service
    try:
        with TestClient(app) as client:
            response = client.post("/api/jobs", json={"target_name": "Notion"})
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 400
    assert len(service.registry) == 0


def test_unknown_job_is_404(client):
    assert client.get("/api/jobs/job_missing").status_code == 404
    assert client.post("/api/jobs/job_missing/pause").status_code == 404
    assert client.delete("/api/jobs/job_missing").status_code == 404


def test_control_on_finished_job_is_409(client, service):
    job = Job(input=JobInput(target_name="Notion"), status=JobStatus.FAILED)
    service.registry.add(job)

    for action in ("pause", "continue", "accept", "cancel", "iterate"):
        response = client.post(f"/api/jobs/{job.id}/{action}")
        assert response.status_code == 409, action

    assert client.get(f"/api/jobs/{job.id}").json()["status"] == "failed"


def test_cancel_pending_job(client, service):
    job = service.registry.add(Job(input=JobInput(target_name="Notion")))

    response = client.post(f"/api/jobs/{job.id}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["error"] == "Job cancelled by user"


def test_delete_job(client):
    job_id = client.post("/api/jobs", json={"target_name": "Notion"}).json()["job_id"]
    _wait_for_status(client, job_id, "complete")

    response = client.delete(f"/api/jobs/{job_id}")

    assert response.status_code == 200
    assert response.json() == {"deleted": True, "errors": []}
    assert client.get(f"/api/jobs/{job_id}").status_code == 404
