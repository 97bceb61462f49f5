from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional
import logging

from dashboard.src.db.database import get_db
from dashboard.src.models.run import PipelineDetail, PipelineListItem
from dashboard.src.services.views import get_pipeline_detail, list_pipelines

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

@router.get("", response_model=List[PipelineListItem])
async def list_pipeline_runs(db: AsyncSession = Depends(get_db)):
    """List all pipeline runs, newest first."""
    try:
        return await list_pipelines(db)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching pipelines: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch pipelines")

@router.get("/details", response_model=PipelineDetail)
async def get_pipeline_run_details(
    id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Get one pipeline run, with git info and jobs, by its GitHub run id."""
    if not id:
        raise HTTPException(status_code=400, detail="Missing pipeline id")

    try:
        run_id = int(id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid pipeline id")

    try:
        detail = await get_pipeline_detail(db, run_id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching pipeline details for run {run_id}: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    if detail is None:
        raise HTTPException(status_code=404, detail="Pipeline not found")

    return detail
