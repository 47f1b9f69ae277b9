from fastapi import FastAPI
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from media_worker.api.jobs import router as jobs_router
from media_worker.api.research import router as research_router
from media_worker.api.swipes import router as swipes_router
from media_worker.db.session import SessionLocal

app = FastAPI(title="Media Worker API", version="0.1.0")
app.include_router(jobs_router)
app.include_router(swipes_router)
app.include_router(research_router)


class HealthResponse(BaseModel):
    ok: bool
    service: str
    version: str
    db_ok: bool


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    # lightweight DB check
    db_ok = False
    db: Session = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        db_ok = False
    finally:
        db.close()

    return HealthResponse(ok=True, service="media-worker", version=app.version, db_ok=db_ok)
