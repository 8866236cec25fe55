"""Request and response schemas."""

from datetime import date

from pydantic import BaseModel, Field, field_validator, model_validator

from .security import (
    sanitize_string,
    validate_description,
    validate_email,
    validate_integer,
    validate_ip,
    validate_title,
    validate_url,
)

CONTENT_KEY_PATTERN = r"^[a-z0-9][a-z0-9_\-]{0,99}$"


def _validate_technologies(values: list[str]) -> list[str]:
    cleaned = []
    for value in values:
        value = sanitize_string(value)
        if not value:
            continue
        if len(value) > 100:
            raise ValueError("technologies: each entry must be at most 100 characters")
        cleaned.append(value)
    return cleaned


# --- projects ---

class ProjectIn(BaseModel):
    title: str
    description: str = ""
    short_description: str | None = None
    type: str = Field(min_length=1, max_length=100)
    technologies: list[str] = []
    github_url: str | None = None
    live_url: str | None = None
    video_url: str | None = None
    featured: bool = False
    active: bool = True
    order: int = 0

    @field_validator("title")
    @classmethod
    def check_title(cls, v):
        return validate_title(v)

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        return validate_description(v)

    @field_validator("short_description")
    @classmethod
    def check_short_description(cls, v):
        if v is None:
            return v
        return validate_description(v, field="short_description")

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        return sanitize_string(v)

    @field_validator("technologies")
    @classmethod
    def check_technologies(cls, v):
        return _validate_technologies(v)

    @field_validator("github_url", "live_url", "video_url")
    @classmethod
    def check_url(cls, v, info):
        if v is None:
            return v
        return validate_url(v, field=info.field_name) or None

    @field_validator("order")
    @classmethod
    def check_order(cls, v):
        return validate_integer(v, 0, 10000, field="order")


# --- skills ---

class SkillIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: str = Field(min_length=1, max_length=100)
    proficiency: int = 1
    icon: str | None = Field(default=None, max_length=50)
    order: int = 0

    @field_validator("name", "category")
    @classmethod
    def check_text(cls, v, info):
        v = sanitize_string(v)
        if not v:
            raise ValueError(f"{info.field_name}: is required")
        return v

    @field_validator("proficiency")
    @classmethod
    def check_proficiency(cls, v):
        return validate_integer(v, 1, 5, field="proficiency")

    @field_validator("order")
    @classmethod
    def check_order(cls, v):
        return validate_integer(v, 0, 10000, field="order")


# --- experience ---

class ExperienceIn(BaseModel):
    title: str
    company: str
    start_date: date
    end_date: date | None = None
    current: bool = False
    description: str = ""
    technologies: list[str] = []
    order: int = 0
    active: bool = True

    @field_validator("title", "company")
    @classmethod
    def check_text(cls, v, info):
        return validate_title(v, field=info.field_name)

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        return validate_description(v)

    @field_validator("technologies")
    @classmethod
    def check_technologies(cls, v):
        return _validate_technologies(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date: must not be before start_date")
        if self.current:
            self.end_date = None
        return self


# --- content ---

class ContentIn(BaseModel):
    key: str = Field(pattern=CONTENT_KEY_PATTERN)
    value: dict


class Highlight(BaseModel):
    icon: str = ""
    text: str


class AboutIn(BaseModel):
    description: str | None = None
    highlights: list[Highlight] | None = None

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        if v is None:
            return v
        return validate_description(v)


class ContactIn(BaseModel):
    email: str | None = None
    location: str | None = Field(default=None, max_length=255)
    linkedin: str | None = None
    github: str | None = None
    availability: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if v is None:
            return v
        return validate_email(v)

    @field_validator("linkedin", "github")
    @classmethod
    def check_url(cls, v, info):
        if v is None:
            return v
        return validate_url(v, field=info.field_name)

    @field_validator("location", "availability")
    @classmethod
    def check_text(cls, v):
        if v is None:
            return v
        return sanitize_string(v)


# --- chat ---

class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    context: str | None = Field(default=None, max_length=5000)

    @field_validator("message")
    @classmethod
    def check_message(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("message: must not be blank")
        return v


class ChatResponse(BaseModel):
    response: str
    sources: list[str]
    model: str
    timestamp: str


# --- analytics / admin ---

class VisitIn(BaseModel):
    ip: str | None = None
    user_agent: str | None = Field(default=None, max_length=1000)
    referrer: str | None = None
    project_id: int | None = Field(default=None, ge=1)

    @field_validator("ip")
    @classmethod
    def check_ip(cls, v):
        if v is None:
            return v
        return validate_ip(v)

    @field_validator("referrer")
    @classmethod
    def check_referrer(cls, v):
        if v is None:
            return v
        return validate_url(v, field="referrer") or None


class LoginIn(BaseModel):
    password: str
