from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from uuid import UUID

class ViewModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True

class StepView(ViewModel):
    name: str
    status: str
    conclusion: str = ""
    duration: str

class JobView(ViewModel):
    id: str
    name: str
    status: str
    conclusion: str = ""
    attempt: int = 1
    started_at: str = ""
    completed_at: str = ""
    duration: str = ""
    steps: List[StepView] = []

class PipelineListItem(ViewModel):
    id: UUID
    run_id: int
    status: str
    branch: str = ""
    commit_sha: str = ""
    started_at: str = ""
    duration: str = ""

class PipelineSummary(PipelineListItem):
    run_number: Optional[int] = None
    workflow_name: str = ""
    conclusion: str = ""
    completed_at: str = ""

class GitInfoView(ViewModel):
    repo_name: str = ""
    branch: str = ""
    commit_sha: str = ""
    author_name: str = ""
    author_email: str = ""
    commit_message: str = ""
    committed_at: str = ""

class PipelineDetail(ViewModel):
    pipeline: PipelineSummary
    git_info: Optional[GitInfoView] = Field(default=None, alias="git_info")
    jobs: List[JobView] = []
