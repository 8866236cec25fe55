"""Builds the portfolio context block handed to the language model."""

import logging

logger = logging.getLogger(__name__)


class ContextBuildError(Exception):
    pass


def _format_skills(skills: list[dict]) -> str:
    by_category: dict[str, list[str]] = {}
    for skill in skills:
        by_category.setdefault(skill["category"], []).append(
            f"{skill['name']} ({skill['proficiency']}/5)"
        )
    lines = [f"- {category}: {', '.join(names)}" for category, names in by_category.items()]
    return "\n".join(lines)


def _format_experience(experiences: list[dict]) -> str:
    lines = []
    for exp in experiences:
        end = "present" if exp.get("current") or not exp.get("end_date") else exp["end_date"]
        line = f"- {exp['title']} at {exp['company']} ({exp['start_date']} to {end})"
        if exp.get("description"):
            line += f": {exp['description']}"
        if exp.get("technologies"):
            line += f" [{', '.join(exp['technologies'])}]"
        lines.append(line)
    return "\n".join(lines)


def _format_projects(projects: list[dict]) -> str:
    lines = []
    for project in projects:
        summary = project.get("short_description") or project.get("description") or ""
        line = f"- {project['title']} ({project['type']})"
        if summary:
            line += f": {summary}"
        if project.get("technologies"):
            line += f" [{', '.join(project['technologies'])}]"
        if project.get("github_url"):
            line += f" {project['github_url']}"
        lines.append(line)
    return "\n".join(lines)


def _format_about(about: dict) -> str:
    parts = []
    if about.get("description"):
        parts.append(about["description"])
    for highlight in about.get("highlights") or []:
        if isinstance(highlight, dict) and highlight.get("text"):
            parts.append(f"- {highlight['text']}")
    return "\n".join(parts)


def _format_contact(contact: dict) -> str:
    return "\n".join(f"- {field}: {value}" for field, value in contact.items() if value)


class ContextBuilder:
    """Fetches skills, experience, projects, about and contact on every call.

    The first failing query aborts the build with ContextBuildError.
    """

    def __init__(self, db):
        self.db = db

    async def build_context(self, message: str) -> str:
        try:
            skills = await self.db.get_skills()
            experiences = await self.db.get_experiences(active_only=True)
            projects = await self.db.get_projects(active_only=True)
            about = await self.db.get_content("about")
            contact = await self.db.get_content("contact")
        except Exception as e:
            logger.error("[Context] failed to load portfolio data: %s", e)
            raise ContextBuildError("Failed to load portfolio data") from e

        sections = [
            ("SKILLS", _format_skills(skills)),
            ("EXPERIENCE", _format_experience(experiences)),
            ("PROJECTS", _format_projects(projects)),
            ("ABOUT", _format_about(about["value"]) if about else ""),
            ("CONTACT", _format_contact(contact["value"]) if contact else ""),
        ]
        blocks = [f"{name}:\n{body}" for name, body in sections if body]
        logger.debug("[Context] built %d sections for message of %d chars", len(blocks), len(message))
        return "\n\n".join(blocks)
