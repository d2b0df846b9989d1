# app/api/v1/jobs.py
from fastapi import APIRouter, Depends, HTTPException, Request

from app.core.errors import NotFoundError
from app.core.rbac import require_superadmin
from app.models.user import User
from app.worker.expiry_job import DocumentExpiryJob

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_expiry_job(request: Request) -> DocumentExpiryJob:
    job = getattr(request.app.state, "expiry_job", None)
    if job is None:
        raise NotFoundError("Document expiry job")
    return job


@router.get("/document-expiry")
def expiry_job_status(
    _: User = Depends(require_superadmin),
    job: DocumentExpiryJob = Depends(get_expiry_job),
):
    return {
        "success": True,
        "message": "Document expiry job status retrieved successfully",
        "data": job.get_status(),
    }


@router.post("/document-expiry/run")
def run_expiry_job(
    current_user: User = Depends(require_superadmin),
    job: DocumentExpiryJob = Depends(get_expiry_job),
):
    """Run one scan now, on the request thread. 409 if a scan is already running."""
    summary = job.run_once()
    if summary is None:
        raise HTTPException(status_code=409, detail="Document expiry scan already running")
    return {
        "success": True,
        "message": "Document expiry scan completed",
        "data": summary.to_dict(),
    }
