"""
GitHub webhook endpoint.
"""

from fastapi import APIRouter, Request, HTTPException, Header, Depends
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import ClientDisconnect
from typing import Optional
import json
import logging

from dashboard.src.config import Settings, get_settings
from dashboard.src.db.database import get_db
from dashboard.src.models.webhook import WorkflowRunEvent
from dashboard.src.services.github import (
    GitHubAPIError,
    GitHubClient,
    build_commit_candidate,
    build_pipeline_candidate,
    fetch_jobs_with_attempts,
    parse_webhook_payload,
    verify_signature,
)
from dashboard.src.services.reconciler import (
    ReconciliationError,
    insert_jobs,
    upsert_commit,
    upsert_pipeline,
)
from dashboard.src.services.timestamps import normalize_timestamps

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

def get_github_client(settings: Settings = Depends(get_settings)) -> GitHubClient:
    return GitHubClient.from_settings(settings)

async def process_workflow_run_event(
    event: WorkflowRunEvent,
    db: AsyncSession,
    github: GitHubClient,
) -> str:
    """Reconcile a workflow_run delivery. Raises ReconciliationError if the pipeline can't be stored."""
    run = event.workflow_run
    if not run.id:
        return "no workflow run id"

    started_at, completed_at = normalize_timestamps(run.created_at, run.updated_at)

    # Commit info is best effort; the pipeline is stored without it on failure
    git_info_id = None
    if run.head_sha:
        try:
            git_info_id = await upsert_commit(db, build_commit_candidate(event))
        except ReconciliationError as e:
            logger.warning(f"Commit reconciliation failed for run {run.id}: {e}")
    else:
        logger.warning(f"Workflow run {run.id} has no head_sha, skipping git info")

    pipeline_id = await upsert_pipeline(
        db, build_pipeline_candidate(event, started_at, completed_at, git_info_id)
    )

    # Job detail is best effort as well
    try:
        jobs = await fetch_jobs_with_attempts(
            db,
            github,
            event.repository.owner.login or "",
            event.repository.name or "",
            run.id,
            pipeline_id,
        )
        await insert_jobs(db, jobs)
    except (GitHubAPIError, ReconciliationError) as e:
        logger.warning(f"Job detail for run {run.id} not recorded: {e}")
    else:
        logger.info(f"Recorded {len(jobs)} job steps for pipeline {pipeline_id}")

    logger.info(f"Processed workflow run {run.id} -> pipeline {pipeline_id}")
    return "webhook processed"

@router.post("/webhook", response_class=PlainTextResponse)
async def github_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    github: GitHubClient = Depends(get_github_client),
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
):
    """
    Receive GitHub workflow_run webhook events.
    """
    try:
        body = await request.body()
    except ClientDisconnect:
        raise HTTPException(status_code=400, detail="failed to read body")

    # Nothing is decoded before the signature checks out
    if not verify_signature(settings.github_webhook_secret, body, x_hub_signature_256):
        raise HTTPException(status_code=401, detail="invalid signature")

    try:
        event = parse_webhook_payload(json.loads(body))
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail="invalid json payload")

    if x_github_event == "ping":
        return "pong"

    try:
        return await process_workflow_run_event(event, db, github)
    except ReconciliationError as e:
        logger.error(f"Pipeline reconciliation failed: {e}")
        raise HTTPException(status_code=500, detail="failed to upsert pipeline")
