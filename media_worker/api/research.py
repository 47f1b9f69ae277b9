from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from media_worker.db.session import get_db
from media_worker.services.research import ResearchFileNotFound, enqueue_research_file

router = APIRouter(prefix="/research", tags=["research"])


class ResearchIngestResponse(BaseModel):
    ok: bool
    research_item_id: str
    file_id: str
    job_id: str


@router.post("/files/{file_id}/ingest", response_model=ResearchIngestResponse)
def ingest_file(file_id: str, db: Session = Depends(get_db)) -> ResearchIngestResponse:
    try:
        item, job = enqueue_research_file(db, file_id)
    except ResearchFileNotFound:
        raise HTTPException(status_code=404, detail="Research file not found")
    return ResearchIngestResponse(ok=True, research_item_id=item.id, file_id=file_id, job_id=job.id)
