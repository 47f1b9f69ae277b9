from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from media_worker.db.session import get_db
from media_worker.services.jobs import get_job

router = APIRouter(prefix="/jobs", tags=["jobs"])


class JobGetResponse(BaseModel):
    ok: bool
    job_id: str
    type: str
    status: str
    attempts: int
    error_message: str | None
    output: dict[str, Any] | None


@router.get("/{job_id}", response_model=JobGetResponse)
def get_job_status(job_id: str, db: Session = Depends(get_db)) -> JobGetResponse:
    job = get_job(db, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobGetResponse(
        ok=True,
        job_id=job.id,
        type=job.type,
        status=job.status,
        attempts=job.attempts,
        error_message=job.error_message,
        output=job.output,
    )
