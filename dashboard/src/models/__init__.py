from dashboard.src.models.pipeline import CommitInfo, PipelineRun, JobStep, JOB_KIND, STEP_KIND
from dashboard.src.models.run import (
    PipelineListItem,
    PipelineSummary,
    PipelineDetail,
    GitInfoView,
    JobView,
    StepView,
)
from dashboard.src.models.webhook import WorkflowRunEvent, WorkflowJob

__all__ = [
    "CommitInfo",
    "PipelineRun",
    "JobStep",
    "JOB_KIND",
    "STEP_KIND",
    "PipelineListItem",
    "PipelineSummary",
    "PipelineDetail",
    "GitInfoView",
    "JobView",
    "StepView",
    "WorkflowRunEvent",
    "WorkflowJob",
]
