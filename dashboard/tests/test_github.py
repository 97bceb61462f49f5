"""Tests for the GitHub jobs client and attempt tracking."""

import httpx
import pytest
from datetime import datetime, timezone

from conftest import GITHUB_API, FakeGitHub
from dashboard.src.models.pipeline import PipelineRun
from dashboard.src.services.github import (
    ConfigurationError,
    GitHubClient,
    TransportError,
    UpstreamError,
    fetch_jobs_with_attempts,
    next_attempt,
)
from dashboard.src.services.reconciler import insert_jobs, upsert_pipeline

def job(job_id=42, name="build", started="2024-05-01T10:00:00Z", completed="2024-05-01T10:01:35Z", steps=None):
    data = {
        "id": job_id,
        "name": name,
        "status": "completed",
        "conclusion": "success",
        "started_at": started,
        "completed_at": completed,
    }
    if steps is not None:
        data["steps"] = steps
    return data

async def create_pipeline(db, run_id=1001):
    return await upsert_pipeline(db, PipelineRun(
        run_id=run_id,
        workflow_name="CI",
        status="completed",
        conclusion="success",
        started_at=datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
        completed_at=datetime(2024, 5, 1, 10, 5, tzinfo=timezone.utc),
    ))

@pytest.mark.asyncio
async def test_list_run_jobs_request_shape(fake_github):
    fake_github.jobs = [job()]

    jobs = await fake_github.client().list_run_jobs("octo-org", "widgets", 1001)

    assert [j.id for j in jobs] == [42]
    assert jobs[0].name == "build"
    assert jobs[0].started_at == "2024-05-01T10:00:00Z"
    request = fake_github.requests[0]
    assert request.url.path == "/repos/octo-org/widgets/actions/runs/1001/jobs"
    assert str(request.url).startswith(GITHUB_API)
    assert request.headers["Authorization"] == "Bearer test-token"
    assert request.url.params["per_page"] == "100"

@pytest.mark.asyncio
async def test_list_run_jobs_follows_pages():
    pages = {
        "1": [job(job_id=1), job(job_id=2)],
        "2": [job(job_id=3)],
    }

    def handler(request):
        page = request.url.params["page"]
        return httpx.Response(200, json={"total_count": 3, "jobs": pages[page]})

    client = GitHubClient("token", base_url=GITHUB_API, transport=httpx.MockTransport(handler))
    jobs = await client.list_run_jobs("o", "r", 1)

    assert [j.id for j in jobs] == [1, 2, 3]

@pytest.mark.asyncio
async def test_missing_token_is_configuration_error(fake_github):
    with pytest.raises(ConfigurationError):
        await fake_github.client(token="").list_run_jobs("o", "r", 1)
    assert fake_github.requests == []

@pytest.mark.asyncio
async def test_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = GitHubClient("token", base_url=GITHUB_API, transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError):
        await client.list_run_jobs("o", "r", 1)

@pytest.mark.asyncio
async def test_timeout_is_transport_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = GitHubClient("token", base_url=GITHUB_API, transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError):
        await client.list_run_jobs("o", "r", 1)

@pytest.mark.asyncio
async def test_non_success_status_is_upstream_error(fake_github):
    fake_github.status_code = 404
    with pytest.raises(UpstreamError, match="404"):
        await fake_github.client().list_run_jobs("o", "r", 1)

@pytest.mark.asyncio
async def test_undecodable_body_is_upstream_error(fake_github):
    fake_github.body = b"<html>oops</html>"
    with pytest.raises(UpstreamError):
        await fake_github.client().list_run_jobs("o", "r", 1)

@pytest.mark.asyncio
async def test_body_without_jobs_is_upstream_error(fake_github):
    fake_github.body = b'{"message": "nope"}'
    with pytest.raises(UpstreamError):
        await fake_github.client().list_run_jobs("o", "r", 1)

@pytest.mark.asyncio
async def test_ill_typed_job_fields_are_upstream_error(fake_github):
    fake_github.jobs = [job(started=1714557600)]
    with pytest.raises(UpstreamError, match="malformed job entry"):
        await fake_github.client().list_run_jobs("o", "r", 1)

@pytest.mark.asyncio
async def test_null_step_is_upstream_error(fake_github):
    fake_github.jobs = [job(steps=[None])]
    with pytest.raises(UpstreamError, match="malformed job entry"):
        await fake_github.client().list_run_jobs("o", "r", 1)

@pytest.mark.asyncio
async def test_non_object_job_is_upstream_error(fake_github):
    fake_github.jobs = ["build"]
    with pytest.raises(UpstreamError):
        await fake_github.client().list_run_jobs("o", "r", 1)

@pytest.mark.asyncio
async def test_fetch_computes_duration(db_session, fake_github):
    pipeline_id = await create_pipeline(db_session)
    fake_github.jobs = [job()]

    rows = await fetch_jobs_with_attempts(db_session, fake_github.client(), "o", "r", 1001, pipeline_id)

    assert len(rows) == 1
    assert rows[0].job_id == "42"
    assert rows[0].kind == "job"
    assert rows[0].duration_sec == 95
    assert rows[0].attempt == 1
    assert rows[0].pipeline_id == pipeline_id

@pytest.mark.asyncio
async def test_fetch_keeps_missing_timestamps_empty(db_session, fake_github):
    pipeline_id = await create_pipeline(db_session)
    fake_github.jobs = [job(started="2024-05-01T10:00:00Z", completed=None)]

    rows = await fetch_jobs_with_attempts(db_session, fake_github.client(), "o", "r", 1001, pipeline_id)

    assert rows[0].started_at is not None
    assert rows[0].completed_at is None
    assert rows[0].duration_sec == 0

@pytest.mark.asyncio
async def test_attempts_increase_per_delivery(db_session, fake_github):
    pipeline_id = await create_pipeline(db_session)
    fake_github.jobs = [job(job_id=7)]
    client = fake_github.client()

    attempts = []
    for _ in range(3):
        rows = await fetch_jobs_with_attempts(db_session, client, "o", "r", 1001, pipeline_id)
        await insert_jobs(db_session, rows)
        attempts.append(rows[0].attempt)

    assert attempts == [1, 2, 3]
    assert await next_attempt(db_session, pipeline_id, "7") == 4

@pytest.mark.asyncio
async def test_attempts_are_scoped_to_pipeline(db_session, fake_github):
    first = await create_pipeline(db_session, run_id=1)
    second = await create_pipeline(db_session, run_id=2)
    fake_github.jobs = [job(job_id=7)]
    client = fake_github.client()

    await insert_jobs(db_session, await fetch_jobs_with_attempts(db_session, client, "o", "r", 1, first))
    rows = await fetch_jobs_with_attempts(db_session, client, "o", "r", 2, second)

    assert rows[0].attempt == 1

@pytest.mark.asyncio
async def test_steps_follow_their_job(db_session, fake_github):
    pipeline_id = await create_pipeline(db_session)
    fake_github.jobs = [job(job_id=5, steps=[
        {"name": "checkout", "status": "completed", "conclusion": "success",
         "started_at": "2024-05-01T10:00:00Z", "completed_at": "2024-05-01T10:00:04Z"},
        {"name": "test", "status": "completed", "conclusion": "failure",
         "started_at": "2024-05-01T10:00:04Z", "completed_at": "2024-05-01T10:01:00Z"},
    ])]

    rows = await fetch_jobs_with_attempts(db_session, fake_github.client(), "o", "r", 1001, pipeline_id)

    assert [(r.kind, r.name) for r in rows] == [("job", "build"), ("step", "checkout"), ("step", "test")]
    assert {r.job_id for r in rows} == {"5"}
    assert {r.attempt for r in rows} == {1}
    assert [r.duration_sec for r in rows[1:]] == [4, 56]

@pytest.mark.asyncio
async def test_fetch_propagates_upstream_error(db_session):
    pipeline_id = await create_pipeline(db_session)
    broken = FakeGitHub()
    broken.status_code = 500

    with pytest.raises(UpstreamError):
        await fetch_jobs_with_attempts(db_session, broken.client(), "o", "r", 1001, pipeline_id)
