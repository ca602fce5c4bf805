"""Job status and manual trigger routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..auth.models import User
from ..dependencies import get_current_user, get_scheduler

router = APIRouter(tags=["jobs"])


@router.get("/jobs")
def list_jobs(scheduler=Depends(get_scheduler), user: User = Depends(get_current_user)):
    return JSONResponse({"running": scheduler.running, "jobs": scheduler.get_status()})


@router.post("/jobs/{job_id}/run")
async def run_job_now(job_id: str, scheduler=Depends(get_scheduler), user: User = Depends(get_current_user)):
    if job_id not in scheduler.jobs:
        return JSONResponse({"error": f"Unknown job: {job_id}"}, status_code=404)
    run = await scheduler.run_job(job_id)
    return JSONResponse({"ok": run.ok, "run": run.as_dict()}, status_code=200 if run.ok else 500)
