"""Key/value page content, including the about and contact pages."""

from fastapi import APIRouter, Depends, HTTPException, Request

from .cache import PAGE_TTL
from .db import DuplicateKeyError
from .dependencies import get_cache, get_db, verify_token
from .experience import list_experiences
from .models import AboutIn, ContactIn, ContentIn
from .skills import list_skills

router = APIRouter(tags=["content"])

PAGE_KEYS = ("about", "contact")

CONTACT_DEFAULTS = {
    "email": "bruno@lucena.cloud",
    "location": "Brazil",
    "linkedin": "https://www.linkedin.com/in/bvlucena",
    "github": "https://github.com/brunovlucena",
    "availability": "Open to new opportunities",
}

ABOUT_DEFAULTS = {
    "description": "",
    "highlights": [],
}


def with_defaults(value: dict | None, defaults: dict) -> dict:
    result = dict(defaults)
    for key, item in (value or {}).items():
        if item not in (None, ""):
            result[key] = item
    return result


# --- generic content ---

@router.get("/content")
async def list_content(db=Depends(get_db)):
    return await db.get_contents()


# must be declared before /content/{key}
@router.get("/content/skills")
async def content_skills(request: Request, db=Depends(get_db), cache=Depends(get_cache)):
    return await list_skills(request, db, cache)


@router.get("/content/experience")
async def content_experience(request: Request, db=Depends(get_db), cache=Depends(get_cache)):
    return await list_experiences(request, db, cache)


@router.get("/content/{key}")
async def get_content(key: str, db=Depends(get_db)):
    content = await db.get_content(key)
    if not content:
        raise HTTPException(status_code=404, detail="Content not found")
    return content


@router.post("/content", status_code=201)
async def create_content(body: ContentIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    content = await db.create_content(body.key, body.value)
    if not content:
        raise HTTPException(status_code=409, detail=f"Content key '{body.key}' already exists")
    await cache.invalidate(body.key)
    return content


@router.put("/content/{content_id}")
async def update_content(
    content_id: int, body: ContentIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)
):
    try:
        content = await db.update_content(content_id, body.key, body.value)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=f"Content key '{body.key}' already exists")
    if not content:
        raise HTTPException(status_code=404, detail="Content not found")
    # the row may have been renamed away from a page key
    await cache.invalidate(body.key, *PAGE_KEYS)
    return content


@router.delete("/content/{content_id}")
async def delete_content(content_id: int, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    content = await db.delete_content(content_id)
    if not content:
        raise HTTPException(status_code=404, detail="Content not found")
    await cache.invalidate(content["key"])
    return {"message": "Content deleted successfully"}


# --- about ---

@router.get("/about")
async def get_about(db=Depends(get_db), cache=Depends(get_cache)):
    about, found = await cache.get("about")
    if found:
        return about
    row = await db.get_content("about")
    about = with_defaults(row["value"] if row else None, ABOUT_DEFAULTS)
    await cache.set("about", about, PAGE_TTL)
    return about


@router.put("/about")
async def update_about(body: AboutIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    row = await db.merge_content("about", body.model_dump(exclude_none=True))
    await cache.invalidate("about")
    return {"message": "About data updated successfully", "about": with_defaults(row["value"], ABOUT_DEFAULTS)}


# --- contact ---

@router.get("/contact")
async def get_contact(db=Depends(get_db), cache=Depends(get_cache)):
    contact, found = await cache.get("contact")
    if found:
        return contact
    row = await db.get_content("contact")
    contact = with_defaults(row["value"] if row else None, CONTACT_DEFAULTS)
    await cache.set("contact", contact, PAGE_TTL)
    return contact


@router.put("/contact")
async def update_contact(body: ContactIn, db=Depends(get_db), cache=Depends(get_cache), _=Depends(verify_token)):
    row = await db.merge_content("contact", body.model_dump(exclude_none=True))
    await cache.invalidate("contact")
    return {"message": "Contact data updated successfully", "contact": with_defaults(row["value"], CONTACT_DEFAULTS)}
