"""
GitHub service for webhook validation, payload decoding and job detail fetching.
"""

import hmac
import hashlib
import logging
from typing import Optional, Dict, Any, List
from uuid import UUID

import httpx
from pydantic import ValidationError
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.src.config import Settings
from dashboard.src.models.pipeline import CommitInfo, PipelineRun, JobStep, JOB_KIND, STEP_KIND
from dashboard.src.models.webhook import WorkflowRunEvent, WorkflowJob
from dashboard.src.services.reconciler import ReconciliationError
from dashboard.src.services.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

class GitHubAPIError(Exception):
    """Base error for job detail fetching."""
    pass

class ConfigurationError(GitHubAPIError):
    """Raised when no API token is configured."""
    pass

class TransportError(GitHubAPIError):
    """Raised when the request to GitHub could not be completed."""
    pass

class UpstreamError(GitHubAPIError):
    """Raised on a non-success status or an undecodable response body."""
    pass

def sign_payload(secret: str, payload: bytes) -> str:
    """Compute the X-Hub-Signature-256 header value for a payload."""
    return "sha256=" + hmac.new(
        secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()

def verify_signature(secret: str, payload: bytes, signature: Optional[str]) -> bool:
    """Verify GitHub webhook signature. An empty secret or signature never verifies."""
    if not secret or not signature:
        return False

    expected = sign_payload(secret, payload)
    return hmac.compare_digest(expected.encode(), signature.encode())

def parse_webhook_payload(payload: Dict[str, Any]) -> WorkflowRunEvent:
    """Decode a workflow_run webhook body. Raises pydantic.ValidationError on ill-typed fields."""
    return WorkflowRunEvent.model_validate(payload)

def build_commit_candidate(event: WorkflowRunEvent) -> CommitInfo:
    """Extract the commit record a workflow run points at."""
    run = event.workflow_run
    head_commit = run.head_commit

    author_name = event.sender.login or ""
    author_email = ""
    message = ""
    committed_at = None
    if head_commit is not None:
        author_name = head_commit.author.name or author_name
        author_email = head_commit.author.email or ""
        message = head_commit.message or ""
        committed_at = parse_timestamp(head_commit.timestamp)

    return CommitInfo(
        repo_name=event.repository.name or "",
        branch=run.head_branch or "",
        commit_sha=run.head_sha or "",
        author_name=author_name,
        author_email=author_email,
        commit_message=message,
        committed_at=committed_at,
    )

def build_pipeline_candidate(event: WorkflowRunEvent, started_at, completed_at, git_info_id: Optional[UUID]) -> PipelineRun:
    """Build the pipeline run record for a workflow_run delivery."""
    run = event.workflow_run
    return PipelineRun(
        run_id=run.id,
        run_number=run.run_number,
        workflow_name=event.workflow.name or run.name or "",
        status=run.status or "",
        conclusion=run.conclusion or "",
        started_at=started_at,
        completed_at=completed_at,
        git_info_id=git_info_id,
    )

class GitHubClient:
    """Minimal client for the GitHub Actions jobs endpoint."""

    per_page = 100

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitHubClient":
        return cls(
            token=settings.github_token,
            base_url=settings.github_api_url,
            timeout=settings.github_api_timeout,
        )

    async def list_run_jobs(self, owner: str, repo: str, run_id: int) -> List[WorkflowJob]:
        """
        Return every job of a workflow run, following pagination.
        Raises ConfigurationError, TransportError or UpstreamError.
        """
        if not self.token:
            raise ConfigurationError("missing GitHub API token")

        url = f"{self.base_url}/repos/{owner}/{repo}/actions/runs/{run_id}/jobs"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }

        jobs: List[WorkflowJob] = []
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            page = 1
            while True:
                try:
                    response = await client.get(
                        url,
                        headers=headers,
                        params={"per_page": self.per_page, "page": page},
                    )
                except httpx.HTTPError as e:
                    raise TransportError(f"request to {url} failed: {e}") from e

                if response.status_code != 200:
                    raise UpstreamError(
                        f"GitHub API error status {response.status_code}: {response.text}"
                    )

                try:
                    body = response.json()
                except ValueError as e:
                    raise UpstreamError(f"invalid jobs JSON: {e}") from e

                if not isinstance(body, dict) or not isinstance(body.get("jobs"), list):
                    raise UpstreamError("jobs response has no 'jobs' list")

                batch = body["jobs"]
                try:
                    jobs.extend(WorkflowJob.model_validate(job) for job in batch)
                except ValidationError as e:
                    raise UpstreamError(f"malformed job entry: {e}") from e

                total = body.get("total_count")
                if not batch or not isinstance(total, int) or len(jobs) >= total:
                    break
                page += 1

        return jobs

def _duration_seconds(started_at, completed_at) -> int:
    if started_at is None or completed_at is None:
        return 0
    return int((completed_at - started_at).total_seconds())

async def next_attempt(db: AsyncSession, pipeline_id: UUID, job_id: str) -> int:
    """Return the attempt number the next record of a job should carry."""
    try:
        result = await db.execute(
            select(func.max(JobStep.attempt))
            .where(JobStep.pipeline_id == pipeline_id)
            .where(JobStep.job_id == job_id)
        )
    except SQLAlchemyError as e:
        raise ReconciliationError(f"attempt lookup for job {job_id}: {e}") from e

    highest = result.scalar()
    return (highest or 0) + 1

async def fetch_jobs_with_attempts(
    db: AsyncSession,
    client: GitHubClient,
    owner: str,
    repo: str,
    run_id: int,
    pipeline_id: UUID,
) -> List[JobStep]:
    """
    Fetch the jobs of a run and turn them into JobStep records.

    The attempt number is derived from what is already stored: a job id seen
    before in the same pipeline gets the next attempt. Steps reported for a job
    are emitted right after it with the same job id and attempt.
    """
    jobs = await client.list_run_jobs(owner, repo, run_id)

    out: List[JobStep] = []
    assigned: Dict[str, int] = {}
    for job in jobs:
        job_id = str(job.id)

        # Repeated ids within one response continue the sequence
        if job_id in assigned:
            attempt = assigned[job_id] + 1
        else:
            attempt = await next_attempt(db, pipeline_id, job_id)
        assigned[job_id] = attempt

        started_at = parse_timestamp(job.started_at)
        completed_at = parse_timestamp(job.completed_at)
        out.append(JobStep(
            pipeline_id=pipeline_id,
            job_id=job_id,
            name=job.name or "",
            kind=JOB_KIND,
            status=job.status or "",
            conclusion=job.conclusion or "",
            started_at=started_at,
            completed_at=completed_at,
            duration_sec=_duration_seconds(started_at, completed_at),
            attempt=attempt,
        ))

        for step in job.steps or []:
            step_started = parse_timestamp(step.started_at)
            step_completed = parse_timestamp(step.completed_at)
            out.append(JobStep(
                pipeline_id=pipeline_id,
                job_id=job_id,
                name=step.name or "",
                kind=STEP_KIND,
                status=step.status or "",
                conclusion=step.conclusion or "",
                started_at=step_started,
                completed_at=step_completed,
                duration_sec=_duration_seconds(step_started, step_completed),
                attempt=attempt,
            ))

    logger.info(f"Fetched {len(jobs)} jobs for run {run_id}")
    return out