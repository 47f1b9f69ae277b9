from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from media_worker.db.session import get_db
from media_worker.services.swipes import (
    RetryNotAllowed,
    SwipeNotFound,
    ingest_meta_ad,
    retry_swipe,
)

router = APIRouter(prefix="/swipes", tags=["swipes"])


class IngestMetaRequest(BaseModel):
    product_id: str
    url: str
    user_id: str | None = None


class SwipeJobResponse(BaseModel):
    ok: bool
    swipe_id: str
    job_id: str | None
    status: str


@router.post("/ingest-meta", response_model=SwipeJobResponse)
def ingest_meta(req: IngestMetaRequest, db: Session = Depends(get_db)) -> SwipeJobResponse:
    try:
        res = ingest_meta_ad(db, req.product_id, req.url, user_id=req.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SwipeJobResponse(
        ok=True,
        swipe_id=res.swipe.id,
        job_id=res.job.id if res.job else None,
        status=res.swipe.status,
    )


@router.post("/{swipe_id}/retry", response_model=SwipeJobResponse)
def retry(swipe_id: str, db: Session = Depends(get_db)) -> SwipeJobResponse:
    try:
        res = retry_swipe(db, swipe_id)
    except SwipeNotFound:
        raise HTTPException(status_code=404, detail="Swipe not found")
    except RetryNotAllowed as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SwipeJobResponse(ok=True, swipe_id=res.swipe.id, job_id=res.job.id if res.job else None, status=res.swipe.status)
