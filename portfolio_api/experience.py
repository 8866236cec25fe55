"""Work experience endpoints. Reads only return active rows."""

from fastapi import APIRouter, Depends, HTTPException, Request

from .cache import LIST_TTL
from .dependencies import get_cache, get_db, verify_token
from .models import ExperienceIn
from .responses import respond_with_etag

router = APIRouter(prefix="/experiences", tags=["experience"])

CACHE_KEY = "experience"


@router.get("")
async def list_experiences(request: Request, db=Depends(get_db), cache=Depends(get_cache)):
    experiences, found = await cache.get(CACHE_KEY)
    if not found:
        experiences = await db.get_experiences(active_only=True)
        await cache.set(CACHE_KEY, experiences, LIST_TTL)
    return respond_with_etag(request, experiences)


@router.get("/{experience_id}")
async def get_experience(experience_id: int, db=Depends(get_db)):
    experience = await db.get_experience(experience_id, active_only=True)
    if not experience:
        raise HTTPException(status_code=404, detail="Experience not found")
    return experience


@router.post("", status_code=201)
async def create_experience(
    body: ExperienceIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)
):
    experience = await db.create_experience(body.model_dump())
    await cache.invalidate(CACHE_KEY)
    return experience


@router.put("/{experience_id}")
async def update_experience(
    experience_id: int, body: ExperienceIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)
):
    experience = await db.update_experience(experience_id, body.model_dump())
    if not experience:
        raise HTTPException(status_code=404, detail="Experience not found")
    await cache.invalidate(CACHE_KEY)
    return experience


@router.delete("/{experience_id}")
async def delete_experience(
    experience_id: int, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)
):
    if not await db.delete_experience(experience_id):
        raise HTTPException(status_code=404, detail="Experience not found")
    await cache.invalidate(CACHE_KEY)
    return {"message": "Experience deleted successfully"}
