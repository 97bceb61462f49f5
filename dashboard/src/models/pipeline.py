from sqlalchemy import BigInteger, Column, String, DateTime, ForeignKey, Integer, Text, Uuid, Index
from sqlalchemy.orm import relationship, synonym
from sqlalchemy.sql import func
import uuid

from dashboard.src.db.database import Base

JOB_KIND = "job"
STEP_KIND = "step"

class CommitInfo(Base):
    __tablename__ = "git_info"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    repo_name = Column(String(255), nullable=False, default="")
    branch = Column(String(255), nullable=False, default="")
    commit_sha = Column(String(64), nullable=False, unique=True)
    author_name = Column(String(255), nullable=False, default="")
    author_email = Column(String(255), nullable=False, default="")
    commit_message = Column(Text, nullable=False, default="")
    committed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    pipelines = relationship("PipelineRun", back_populates="commit")

class PipelineRun(Base):
    __tablename__ = "pipelines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    run_id = Column(BigInteger, nullable=False, unique=True)
    run_number = Column(Integer)
    workflow_name = Column(String(255), nullable=False, default="")
    status = Column(String(50), nullable=False, default="")
    conclusion = Column(String(50), nullable=False, default="")
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    git_info_id = Column(Uuid, ForeignKey("git_info.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    commit = relationship("CommitInfo", back_populates="pipelines")
    jobs = relationship("JobStep", back_populates="pipeline")

class JobStep(Base):
    __tablename__ = "jobs_steps"
    __table_args__ = (
        Index("ix_jobs_steps_pipeline_job", "pipeline_id", "job_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pipeline_id = Column(Uuid, ForeignKey("pipelines.id"), nullable=False)
    job_id = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False, default="")
    kind = Column("type", String(16), nullable=False, default=JOB_KIND)
    status = Column(String(50), nullable=False, default="")
    conclusion = Column(String(50), nullable=False, default="")
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    duration_sec = Column(Integer, nullable=False, default=0)
    attempt = Column(Integer, nullable=False, default=1)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Stored column name
    type = synonym("kind")

    pipeline = relationship("PipelineRun", back_populates="jobs")
