"""Admin API router: login and project visibility management."""

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request

from .dependencies import get_cache, get_db, get_settings, verify_token
from .models import LoginIn
from .security import secure_compare

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# --- login ---

@router.post("/login")
async def admin_login(body: LoginIn, request: Request, settings=Depends(get_settings)):
    if not settings.admin_password or not secure_compare(body.password, settings.admin_password):
        logger.warning("[Admin] failed login attempt")
        raise HTTPException(status_code=401, detail="Invalid password")
    token = secrets.token_hex(32)
    request.app.state.admin_sessions.add(token)
    return {"token": token}


# --- projects ---

@router.get("/projects")
async def list_all_projects(db=Depends(get_db), _=Depends(verify_token)):
    projects = await db.get_projects(active_only=False)
    active = sum(1 for p in projects if p["active"])
    return {
        "projects": projects,
        "total": len(projects),
        "active": active,
        "inactive": len(projects) - active,
    }


@router.get("/projects/stats")
async def project_stats(db=Depends(get_db), _=Depends(verify_token)):
    stats = await db.get_project_stats()
    total, active = stats["total"], stats["active"]
    return {
        "total_projects": total,
        "active_projects": active,
        "inactive_projects": total - active,
        "active_percentage": round(active / total * 100, 2) if total else 0.0,
    }


async def _set_active(project_id: int, active: bool, db, cache):
    if not await db.set_project_active(project_id, active):
        raise HTTPException(status_code=404, detail="Project not found")
    await cache.invalidate("projects")
    state = "activated" if active else "deactivated"
    logger.info("[Admin] project %d %s", project_id, state)
    return {"message": f"Project {state} successfully", "id": project_id, "active": active}


@router.put("/projects/{project_id}/activate")
async def activate_project(project_id: int, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    return await _set_active(project_id, True, db, cache)


@router.put("/projects/{project_id}/deactivate")
async def deactivate_project(project_id: int, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    return await _set_active(project_id, False, db, cache)
