from fastapi import APIRouter, Depends, HTTPException, Request

from .dependencies import client_ip, get_db
from .models import VisitIn
from .security import ValidationError, validate_ip

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post("/track")
@router.post("/visit")
async def track(body: VisitIn, request: Request, db=Depends(get_db)):
    """Record a visitor ping, plus a project view when project_id is given."""
    ip = body.ip
    if ip is None:
        try:
            ip = validate_ip(client_ip(request))
        except ValidationError:
            raise HTTPException(status_code=400, detail="ip: could not determine a valid client IP")
    user_agent = body.user_agent or request.headers.get("user-agent", "")

    await db.track_visit(ip, user_agent)

    if body.project_id is not None:
        if not await db.track_project_view(body.project_id, ip, user_agent, body.referrer):
            raise HTTPException(status_code=404, detail="Project not found")

    return {"message": "Visit tracked"}
