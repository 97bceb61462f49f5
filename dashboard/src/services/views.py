"""
Read-side assembly of pipeline list and detail views.

The builders are pure: they take records already loaded from the datastore
and return response models. The query functions at the bottom do the loading.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.src.models.pipeline import CommitInfo, PipelineRun, JobStep, JOB_KIND, STEP_KIND
from dashboard.src.models.run import (
    GitInfoView,
    JobView,
    PipelineDetail,
    PipelineListItem,
    PipelineSummary,
    StepView,
)

logger = logging.getLogger(__name__)

def format_duration(seconds: int) -> str:
    """Render elapsed seconds as e.g. 1h2m3s, 1m35s, 42s or 0s."""
    seconds = int(seconds or 0)
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)

    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"

def format_timestamp(value: Optional[datetime]) -> str:
    """RFC3339 rendering. Naive values are taken as UTC; None renders empty."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value.utcoffset().total_seconds() == 0:
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return value.isoformat(timespec="seconds")

def pipeline_duration(started_at: Optional[datetime], completed_at: Optional[datetime]) -> str:
    if started_at is None or completed_at is None:
        return ""
    return format_duration(int((completed_at - started_at).total_seconds()))

def build_list_item(pipeline: PipelineRun, commit: Optional[CommitInfo]) -> PipelineListItem:
    return PipelineListItem(
        id=pipeline.id,
        run_id=pipeline.run_id,
        status=pipeline.status or "",
        branch=commit.branch if commit else "",
        commit_sha=commit.commit_sha if commit else "",
        started_at=format_timestamp(pipeline.started_at),
        duration=pipeline_duration(pipeline.started_at, pipeline.completed_at),
    )

def build_git_info(commit: Optional[CommitInfo]) -> Optional[GitInfoView]:
    if commit is None:
        return None
    return GitInfoView(
        repo_name=commit.repo_name or "",
        branch=commit.branch or "",
        commit_sha=commit.commit_sha or "",
        author_name=commit.author_name or "",
        author_email=commit.author_email or "",
        commit_message=commit.commit_message or "",
        committed_at=format_timestamp(commit.committed_at),
    )

def _step_view(row: JobStep) -> StepView:
    return StepView(
        name=row.name or "",
        status=row.status or "",
        conclusion=row.conclusion or "",
        duration=format_duration(row.duration_sec),
    )

def group_jobs(rows: Iterable[JobStep]) -> List[JobView]:
    """
    Group flat job/step rows into jobs with nested steps.

    Jobs are listed in the order their id is first seen. Each job shows its
    latest attempt: fields come from that attempt's ``job`` row (or the first
    row seen for the id when there is none) and steps are that attempt's
    ``step`` rows in stored order. Steps recorded by earlier attempts of a
    rerun job are left out of the view.
    """
    by_job: Dict[str, List[JobStep]] = {}
    for row in rows:
        by_job.setdefault(row.job_id, []).append(row)

    jobs: List[JobView] = []
    for job_id, job_rows in by_job.items():
        latest = max((row.attempt or 1) for row in job_rows)
        head = next(
            (row for row in job_rows if row.kind == JOB_KIND and (row.attempt or 1) == latest),
            job_rows[0],
        )
        steps = [
            _step_view(row)
            for row in job_rows
            if row.kind == STEP_KIND and (row.attempt or 1) == latest
        ]
        jobs.append(JobView(
            id=job_id,
            name=head.name or "",
            status=head.status or "",
            conclusion=head.conclusion or "",
            attempt=latest,
            started_at=format_timestamp(head.started_at),
            completed_at=format_timestamp(head.completed_at),
            duration=format_duration(head.duration_sec),
            steps=steps,
        ))

    return jobs

def build_pipeline_detail(
    pipeline: PipelineRun,
    commit: Optional[CommitInfo],
    rows: Iterable[JobStep],
) -> PipelineDetail:
    summary = PipelineSummary(
        id=pipeline.id,
        run_id=pipeline.run_id,
        run_number=pipeline.run_number,
        workflow_name=pipeline.workflow_name or "",
        status=pipeline.status or "",
        conclusion=pipeline.conclusion or "",
        branch=commit.branch if commit else "",
        commit_sha=commit.commit_sha if commit else "",
        started_at=format_timestamp(pipeline.started_at),
        completed_at=format_timestamp(pipeline.completed_at),
        duration=pipeline_duration(pipeline.started_at, pipeline.completed_at),
    )
    return PipelineDetail(
        pipeline=summary,
        git_info=build_git_info(commit),
        jobs=group_jobs(rows),
    )

async def _load_commits(db: AsyncSession, commit_ids) -> Dict:
    """Resolve commit records by id. Lookup failures degrade to an empty result."""
    ids = {commit_id for commit_id in commit_ids if commit_id is not None}
    if not ids:
        return {}

    try:
        result = await db.execute(select(CommitInfo).where(CommitInfo.id.in_(ids)))
    except SQLAlchemyError as e:
        logger.warning(f"Failed to fetch git info: {e}")
        return {}

    return {commit.id: commit for commit in result.scalars().all()}

async def list_pipelines(db: AsyncSession) -> List[PipelineListItem]:
    """All pipeline runs, newest first (created_at desc, then run id desc)."""
    result = await db.execute(
        select(PipelineRun).order_by(PipelineRun.created_at.desc(), PipelineRun.run_id.desc())
    )
    pipelines = result.scalars().all()

    commits = await _load_commits(db, (p.git_info_id for p in pipelines))
    return [build_list_item(p, commits.get(p.git_info_id)) for p in pipelines]

async def get_pipeline_detail(db: AsyncSession, run_id: int) -> Optional[PipelineDetail]:
    """Detail view of the pipeline with the given external run id, or None."""
    result = await db.execute(select(PipelineRun).where(PipelineRun.run_id == run_id))
    pipeline = result.scalars().first()
    if pipeline is None:
        return None

    result = await db.execute(
        select(JobStep)
        .where(JobStep.pipeline_id == pipeline.id)
        .order_by(JobStep.position, JobStep.attempt)
    )
    rows = result.scalars().all()

    commits = await _load_commits(db, [pipeline.git_info_id])

    return build_pipeline_detail(pipeline, commits.get(pipeline.git_info_id), rows)
