"""Public project endpoints and admin-token protected writes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from .cache import LIST_TTL
from .dependencies import get_cache, get_db, verify_token
from .models import ProjectIn
from .responses import respond_with_etag

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])

CACHE_KEY = "projects"


@router.get("")
async def list_projects(request: Request, db=Depends(get_db), cache=Depends(get_cache)):
    projects, found = await cache.get(CACHE_KEY)
    if not found:
        projects = await db.get_projects(active_only=True)
        await cache.set(CACHE_KEY, projects, LIST_TTL)
    return respond_with_etag(request, projects)


@router.get("/{project_id}")
async def get_project(project_id: int, db=Depends(get_db)):
    project = await db.get_project(project_id, active_only=True)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.post("", status_code=201)
async def create_project(body: ProjectIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    project = await db.create_project(body.model_dump())
    await cache.invalidate(CACHE_KEY)
    logger.info("[Projects] created %d %r", project["id"], project["title"])
    return project


@router.put("/{project_id}")
async def update_project(
    project_id: int, body: ProjectIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)
):
    project = await db.update_project(project_id, body.model_dump())
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    await cache.invalidate(CACHE_KEY)
    return project


@router.delete("/{project_id}")
async def delete_project(project_id: int, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    if not await db.delete_project(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    await cache.invalidate(CACHE_KEY)
    logger.info("[Projects] deleted %d", project_id)
    return {"message": "Project deleted successfully"}
