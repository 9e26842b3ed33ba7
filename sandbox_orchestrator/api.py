"""FastAPI application for the sandbox orchestrator."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .exceptions import JobNotFoundError, JobValidationError
from .manager import ExecutionManager
from .models import Job, JobStatus
from .sandbox_provider import SandboxProvider


# Request/Response models
class SubmitJobRequest(BaseModel):
    """Job submission; accepts both the current and the historical field names."""

    model_config = ConfigDict(extra="ignore")

    job_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("jobId", "job_id"))
    repo_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("repoUrl", "repo_url"))
    repo_slug: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("repoSlug", "repo_slug", "slug")
    )
    branch: Optional[str] = None
    task_description: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("taskDescription", "task_description", "task")
    )
    commit_hash: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("commitHash", "commit_hash", "commit")
    )
    test_command: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("testCommand", "test_command")
    )


class EnsureSandboxRequest(BaseModel):
    slug: Optional[str] = None
    branch: Optional[str] = None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SandboxConnectionResponse(CamelModel):
    slug: str
    host: str
    port: int
    token: str
    ttl_seconds: int
    cpu_limit: str
    memory_limit: str
    image: str
    expires_at: datetime


class JobResponse(CamelModel):
    job_id: str
    repo_url: Optional[str] = None
    repo_slug: Optional[str] = None
    branch: str
    task_description: str
    commit_hash: Optional[str] = None
    test_command: Optional[str] = None
    status: JobStatus
    summary: Optional[str] = None
    changed_files: List[str] = Field(default_factory=list)
    patch: str = ""
    error: Optional[str] = None
    logs: List[str] = Field(default_factory=list)
    sandbox_path: Optional[str] = None
    sandbox: Optional[SandboxConnectionResponse] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls.model_validate(job.to_dict())


class HealthResponse(CamelModel):
    status: str
    active_jobs: int
    total_jobs: int


def get_manager(request: Request) -> ExecutionManager:
    return request.app.state.manager


def get_provider(request: Request) -> SandboxProvider:
    return request.app.state.sandbox_provider


router = APIRouter()


@router.post("/jobs", response_model=JobResponse)
async def submit_job(
    payload: SubmitJobRequest,
    response: Response,
    manager: ExecutionManager = Depends(get_manager),
):
    """Submit a job; 201 on creation, 200 when the job id is already known."""
    job, created = manager.submit(
        payload.job_id,
        payload.branch,
        payload.task_description,
        repo_url=payload.repo_url,
        repo_slug=payload.repo_slug,
        commit_hash=payload.commit_hash,
        test_command=payload.test_command,
    )
    response.status_code = 201 if created else 200
    return JobResponse.from_job(job)


@router.get("/jobs", response_model=List[JobResponse])
async def list_jobs(
    status: Optional[JobStatus] = Query(None, description="Filter by status"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Limit number of results"),
    manager: ExecutionManager = Depends(get_manager),
):
    """List all jobs with optional filtering."""
    jobs = manager.list_jobs()
    if status:
        jobs = [job for job in jobs if job.status == status]
    if limit:
        jobs = jobs[:limit]
    return [JobResponse.from_job(job) for job in jobs]


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, manager: ExecutionManager = Depends(get_manager)):
    """Get details of a specific job."""
    return JobResponse.from_job(manager.lookup(job_id))


@router.post("/sandboxes/ensure", response_model=SandboxConnectionResponse)
async def ensure_sandbox(payload: EnsureSandboxRequest, provider: SandboxProvider = Depends(get_provider)):
    """Return a cached or freshly provisioned sandbox connection."""
    slug = (payload.slug or "").strip()
    if not slug:
        return JSONResponse(status_code=400, content={"error": "slug is required"})
    if payload.branch is None:
        connection = provider.ensure(slug)
    else:
        branch = payload.branch.strip()
        if not branch:
            return JSONResponse(status_code=400, content={"error": "branch must not be blank"})
        connection = provider.ensure_for_branch(slug, branch)
    return SandboxConnectionResponse.model_validate(connection.to_dict())


async def _validation_error_handler(_request: Request, exc: Exception):
    if isinstance(exc, JobValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc), "missing": exc.missing_fields})
    return JSONResponse(status_code=400, content={"error": "invalid request body"})


async def _not_found_handler(_request: Request, _exc: JobNotFoundError):
    return JSONResponse(status_code=404, content={"error": "job not found"})


async def _internal_error_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unexpected error handling {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "internal_error"})


def create_app(
    manager: Optional[ExecutionManager] = None,
    sandbox_provider: Optional[SandboxProvider] = None,
) -> FastAPI:
    """Build an app instance that owns its job registry and sandbox cache."""
    provider = sandbox_provider or (manager.sandbox_provider if manager else None) or SandboxProvider()
    if manager is None:
        manager = ExecutionManager(sandbox_provider=provider)
    elif manager.sandbox_provider is None:
        manager.sandbox_provider = provider

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.manager.shutdown()

    app = FastAPI(
        title="Sandbox Orchestrator",
        description="API for running coding tasks against cloned repositories in isolated workspaces",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.manager = manager
    app.state.sandbox_provider = provider

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        jobs = app.state.manager.list_jobs()
        active_jobs = len([job for job in jobs if not job.status.is_terminal])
        return HealthResponse(status="ok", active_jobs=active_jobs, total_jobs=len(jobs))

    app.include_router(router)
    app.include_router(router, prefix="/api/v1")
    app.add_exception_handler(JobValidationError, _validation_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(JobNotFoundError, _not_found_handler)
    app.add_exception_handler(Exception, _internal_error_handler)
    return app


app = create_app()
