from fastapi import APIRouter, Depends, HTTPException, Request

from .cache import LIST_TTL
from .dependencies import get_cache, get_db, verify_token
from .models import SkillIn
from .responses import respond_with_etag

router = APIRouter(prefix="/skills", tags=["skills"])

CACHE_KEY = "skills"


@router.get("")
async def list_skills(request: Request, db=Depends(get_db), cache=Depends(get_cache)):
    skills, found = await cache.get(CACHE_KEY)
    if not found:
        skills = await db.get_skills()
        await cache.set(CACHE_KEY, skills, LIST_TTL)
    return respond_with_etag(request, skills)


@router.get("/{skill_id}")
async def get_skill(skill_id: int, db=Depends(get_db)):
    skill = await db.get_skill(skill_id)
    if not skill:
        raise HTTPException(status_code=404, detail="Skill not found")
    return skill


@router.post("", status_code=201)
async def create_skill(body: SkillIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    skill = await db.create_skill(body.model_dump())
    await cache.invalidate(CACHE_KEY)
    return skill


@router.put("/{skill_id}")
async def update_skill(
    skill_id: int, body: SkillIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)
):
    skill = await db.update_skill(skill_id, body.model_dump())
    if not skill:
        raise HTTPException(status_code=404, detail="Skill not found")
    await cache.invalidate(CACHE_KEY)
    return skill


@router.delete("/{skill_id}")
async def delete_skill(skill_id: int, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    if not await db.delete_skill(skill_id):
        raise HTTPException(status_code=404, detail="Skill not found")
    await cache.invalidate(CACHE_KEY)
    return {"message": "Skill deleted successfully"}
