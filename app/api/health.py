# app/api/health.py
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.auth import get_db

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz(request: Request) -> dict:
    # liveness: 200 while the process is up
    job = getattr(request.app.state, "expiry_job", None)
    return {
        "ok": True,
        "service": "hr-compliance-api",
        "status": "healthy",
        "expiry_job_running": bool(job and job.running),
        "ts": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/readyz")
def readyz(db: Session = Depends(get_db)):
    # readiness: DB ping + latency
    t0 = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - t0) * 1000.0
        return JSONResponse(
            status_code=200,
            content={"ok": True, "db": "up", "db_latency_ms": round(latency_ms, 2)},
            headers={"Cache-Control": "no-store"},
        )
    except Exception as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "db": "down", "error": type(e).__name__},
            headers={"Cache-Control": "no-store"},
        )
