"""
Idempotent storage of commits, pipeline runs and job steps.

Every operation follows lookup-then-insert-or-update against the datastore.
Each one commits its own work so a failure on one record does not roll back
records already reconciled for the same delivery.
"""

import logging
import uuid
from typing import Dict, List
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.src.models.pipeline import CommitInfo, PipelineRun, JobStep

logger = logging.getLogger(__name__)

class ReconciliationError(Exception):
    """Raised when a datastore lookup, insert or update fails."""
    pass

async def upsert_commit(db: AsyncSession, candidate: CommitInfo) -> UUID:
    """
    Return the id of the commit record for ``candidate.commit_sha``,
    inserting ``candidate`` if none exists. Existing records are never modified.
    """
    try:
        result = await db.execute(
            select(CommitInfo.id).where(CommitInfo.commit_sha == candidate.commit_sha)
        )
        existing_id = result.scalars().first()
        if existing_id is not None:
            return existing_id

        commit_id = uuid.uuid4()
        candidate.id = commit_id
        db.add(candidate)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to upsert commit {candidate.commit_sha}: {e}")
        raise ReconciliationError(f"commit {candidate.commit_sha}: {e}") from e

    logger.info(f"Commit {candidate.commit_sha} inserted as {commit_id}")
    return commit_id

async def upsert_pipeline(db: AsyncSession, candidate: PipelineRun) -> UUID:
    """
    Insert a pipeline run keyed by its external run id, or overwrite the
    mutable state (status, conclusion, started/completed) of the existing one.
    """
    run_id = candidate.run_id
    try:
        result = await db.execute(
            select(PipelineRun).where(PipelineRun.run_id == candidate.run_id)
        )
        existing = result.scalars().first()

        if existing is not None:
            pipeline_id = existing.id
            existing.status = candidate.status
            existing.conclusion = candidate.conclusion
            existing.started_at = candidate.started_at
            existing.completed_at = candidate.completed_at
            if existing.git_info_id is None and candidate.git_info_id is not None:
                existing.git_info_id = candidate.git_info_id
            await db.commit()
            logger.info(f"Pipeline {pipeline_id} (run {run_id}) updated to {candidate.status}")
            return pipeline_id

        pipeline_id = uuid.uuid4()
        candidate.id = pipeline_id
        db.add(candidate)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to upsert pipeline for run {run_id}: {e}")
        raise ReconciliationError(f"run {run_id}: {e}") from e

    logger.info(f"Pipeline {pipeline_id} (run {run_id}) inserted")
    return pipeline_id

async def insert_jobs(db: AsyncSession, jobs: List[JobStep]):
    """
    Append job/step records in a single commit. No deduplication happens here.

    Rows without a position continue their pipeline's sequence, so reading a
    pipeline's rows by position replays them in delivery order.
    """
    if not jobs:
        return

    last_position: Dict[UUID, int] = {}
    try:
        for job in jobs:
            if job.id is None:
                job.id = uuid.uuid4()
            if job.position is None:
                if job.pipeline_id not in last_position:
                    result = await db.execute(
                        select(func.max(JobStep.position))
                        .where(JobStep.pipeline_id == job.pipeline_id)
                    )
                    highest = result.scalar()
                    last_position[job.pipeline_id] = -1 if highest is None else highest
                last_position[job.pipeline_id] += 1
                job.position = last_position[job.pipeline_id]

        db.add_all(jobs)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to insert {len(jobs)} job steps: {e}")
        raise ReconciliationError(f"job steps: {e}") from e

    logger.info(f"Inserted {len(jobs)} job steps")
