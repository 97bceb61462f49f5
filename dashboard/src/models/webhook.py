"""
Pydantic models for the GitHub ``workflow_run`` webhook payload and the
Actions jobs listing.

Only the fields the dashboard records are declared; everything else GitHub
sends is ignored. Missing objects decode to their defaults so a sparse
delivery still parses.
"""

from pydantic import BaseModel
from typing import List, Optional

class Named(BaseModel):
    name: Optional[str] = None

class Owner(BaseModel):
    login: Optional[str] = None

class RepositoryPayload(BaseModel):
    name: Optional[str] = None
    owner: Owner = Owner()

class CommitAuthor(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None

class HeadCommit(BaseModel):
    message: Optional[str] = None
    timestamp: Optional[str] = None
    author: CommitAuthor = CommitAuthor()

class WorkflowRunPayload(BaseModel):
    id: int = 0
    name: Optional[str] = None
    head_branch: Optional[str] = None
    head_sha: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    run_number: Optional[int] = None
    head_commit: Optional[HeadCommit] = None

class WorkflowRunEvent(BaseModel):
    workflow: Named = Named()
    repository: RepositoryPayload = RepositoryPayload()
    sender: Owner = Owner()
    workflow_run: WorkflowRunPayload = WorkflowRunPayload()

# Jobs endpoint response entries (GET /repos/{owner}/{repo}/actions/runs/{id}/jobs)

class WorkflowJobStep(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

class WorkflowJob(BaseModel):
    id: int = 0
    name: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    steps: Optional[List[WorkflowJobStep]] = None
