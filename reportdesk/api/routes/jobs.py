"""Manual triggers for the scheduled batch jobs (admin only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, sessionmaker

from reportdesk.core.auth import RequestUserContext, require_roles
from reportdesk.core.clock import Clock, get_clock
from reportdesk.core.errors import ConflictError, NotFoundError
from reportdesk.db.dependencies import get_db_session
from reportdesk.models.entities import UserRole
from reportdesk.services.batch_jobs import BatchJobs
from reportdesk.services.mailer import EmailDispatcher, get_email_dispatcher

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_batch_jobs(
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
    email: EmailDispatcher = Depends(get_email_dispatcher),
) -> BatchJobs:
    """Batch jobs bound to the same database as the request session."""

    session_factory = sessionmaker(bind=db.get_bind(), autoflush=False, autocommit=False, future=True)
    return BatchJobs(session_factory, clock=clock, email=email)


@router.get("")
def list_jobs(
    _: RequestUserContext = Depends(require_roles(UserRole.ADMIN)),
    jobs: BatchJobs = Depends(get_batch_jobs),
) -> dict[str, list[str]]:
    return {"items": sorted(jobs.registry())}


@router.post("/{job_name}/run")
def run_job(
    job_name: str,
    _: RequestUserContext = Depends(require_roles(UserRole.ADMIN)),
    jobs: BatchJobs = Depends(get_batch_jobs),
) -> dict[str, object]:
    job = jobs.registry().get(job_name)
    if job is None:
        raise NotFoundError(f"Unknown job '{job_name}'.")
    result = job()
    if result.skipped:
        raise ConflictError(f"Job '{job_name}' is already running.")
    return {"job": job_name, **result.serialize()}
