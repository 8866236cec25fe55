"""PostgreSQL access: connection pool, schema and queries."""

import json
import logging
from datetime import date, datetime

import asyncpg

logger = logging.getLogger(__name__)

PROJECT_COLUMNS = (
    'id, title, description, short_description, type, technologies, github_url, live_url, '
    'video_url, featured, active, "order", created_at, updated_at'
)
SKILL_COLUMNS = 'id, name, category, proficiency, icon, "order"'
EXPERIENCE_COLUMNS = (
    'id, title, company, start_date, end_date, current, description, technologies, "order", active'
)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS projects (
        id                SERIAL PRIMARY KEY,
        title             VARCHAR(255) NOT NULL,
        description       TEXT,
        short_description TEXT,
        type              VARCHAR(100) NOT NULL,
        technologies      TEXT[] NOT NULL DEFAULT '{}',
        github_url        VARCHAR(2048),
        live_url          VARCHAR(2048),
        video_url         VARCHAR(2048),
        featured          BOOLEAN NOT NULL DEFAULT FALSE,
        active            BOOLEAN NOT NULL DEFAULT TRUE,
        "order"           INTEGER NOT NULL DEFAULT 0,
        created_at        TIMESTAMPTZ DEFAULT NOW(),
        updated_at        TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS project_views (
        id          SERIAL PRIMARY KEY,
        project_id  INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        ip          VARCHAR(45) NOT NULL,
        user_agent  TEXT,
        referrer    VARCHAR(2048),
        viewed_at   TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS visitors (
        id           SERIAL PRIMARY KEY,
        ip           VARCHAR(45) UNIQUE NOT NULL,
        user_agent   TEXT,
        first_visit  TIMESTAMPTZ DEFAULT NOW(),
        last_visit   TIMESTAMPTZ DEFAULT NOW(),
        visit_count  INTEGER NOT NULL DEFAULT 1,
        created_at   TIMESTAMPTZ DEFAULT NOW(),
        updated_at   TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS content (
        id          SERIAL PRIMARY KEY,
        key         VARCHAR(100) UNIQUE NOT NULL,
        value       JSONB NOT NULL DEFAULT '{}',
        created_at  TIMESTAMPTZ DEFAULT NOW(),
        updated_at  TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS skills (
        id           SERIAL PRIMARY KEY,
        name         VARCHAR(100) NOT NULL,
        category     VARCHAR(100) NOT NULL,
        proficiency  INTEGER NOT NULL DEFAULT 1 CHECK (proficiency >= 1 AND proficiency <= 5),
        icon         VARCHAR(50),
        "order"      INTEGER NOT NULL DEFAULT 0,
        created_at   TIMESTAMPTZ DEFAULT NOW(),
        updated_at   TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS experience (
        id            SERIAL PRIMARY KEY,
        title         VARCHAR(255) NOT NULL,
        company       VARCHAR(255) NOT NULL,
        start_date    DATE NOT NULL,
        end_date      DATE,
        current       BOOLEAN NOT NULL DEFAULT FALSE,
        description   TEXT,
        technologies  TEXT[] NOT NULL DEFAULT '{}',
        active        BOOLEAN NOT NULL DEFAULT TRUE,
        "order"       INTEGER NOT NULL DEFAULT 0,
        created_at    TIMESTAMPTZ DEFAULT NOW(),
        updated_at    TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    'CREATE INDEX IF NOT EXISTS idx_projects_active ON projects(active);',
    'CREATE INDEX IF NOT EXISTS idx_projects_order ON projects("order");',
    'CREATE INDEX IF NOT EXISTS idx_project_views_project_id ON project_views(project_id);',
    'CREATE INDEX IF NOT EXISTS idx_visitors_last_visit ON visitors(last_visit);',
    'CREATE INDEX IF NOT EXISTS idx_skills_category ON skills(category);',
    'CREATE INDEX IF NOT EXISTS idx_experience_active ON experience(active);',
    """
    CREATE OR REPLACE FUNCTION update_updated_at_column()
    RETURNS TRIGGER AS $$
    BEGIN
        NEW.updated_at = NOW();
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql;
    """,
]

TRIGGER_TABLES = ("projects", "visitors", "content", "skills", "experience")


def serialize_row(row) -> dict:
    """Convert a record to a JSON-serializable dict."""
    result = dict(row)
    for key, value in result.items():
        if isinstance(value, (datetime, date)):
            result[key] = value.isoformat()
    return result


def affected_rows(status: str) -> int:
    """Row count from an asyncpg command tag such as 'UPDATE 1'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0


async def _init_connection(conn):
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class DuplicateKeyError(Exception):
    """A write would give a content row a key another row already has."""


class Database:
    """Owns the asyncpg pool; every query the API issues goes through here."""

    def __init__(self, dsn: str, ssl_mode: str = "disable", min_size: int = 5, max_size: int = 25):
        self.dsn = dsn
        self.ssl_mode = ssl_mode
        self.min_size = min(min_size, max_size)
        self.max_size = max_size
        self.pool = None

    async def connect(self):
        """Open the pool and create tables."""
        self.pool = await asyncpg.create_pool(
            self.dsn,
            ssl=self.ssl_mode,
            min_size=self.min_size,
            max_size=self.max_size,
            init=_init_connection,
        )
        await self.create_tables()
        logger.info("[DB] connection pool initialized (max=%d, ssl=%s)", self.max_size, self.ssl_mode)

    async def close(self):
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("[DB] connection pool closed")

    async def create_tables(self):
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                for statement in SCHEMA:
                    await conn.execute(statement)
                for table in TRIGGER_TABLES:
                    await conn.execute(f"DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table};")
                    await conn.execute(
                        f"CREATE TRIGGER update_{table}_updated_at BEFORE UPDATE ON {table} "
                        "FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();"
                    )

    async def ping(self) -> bool:
        if not self.pool:
            return False
        async with self.pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1

    # --- projects ---

    async def get_projects(self, active_only: bool = True) -> list[dict]:
        query = f"SELECT {PROJECT_COLUMNS} FROM projects"
        if active_only:
            query += " WHERE active = TRUE"
        query += ' ORDER BY "order" ASC, id ASC'
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query)
        return [serialize_row(row) for row in rows]

    async def get_project(self, project_id: int, active_only: bool = True) -> dict | None:
        query = f"SELECT {PROJECT_COLUMNS} FROM projects WHERE id = $1"
        if active_only:
            query += " AND active = TRUE"
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, project_id)
        return serialize_row(row) if row else None

    async def create_project(self, project: dict) -> dict:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO projects (title, description, short_description, type, technologies,
                                      github_url, live_url, video_url, featured, active, "order")
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                RETURNING {PROJECT_COLUMNS}
                """,
                project["title"],
                project["description"],
                project.get("short_description"),
                project["type"],
                project.get("technologies", []),
                project.get("github_url"),
                project.get("live_url"),
                project.get("video_url"),
                project.get("featured", False),
                project.get("active", True),
                project.get("order", 0),
            )
        return serialize_row(row)

    async def update_project(self, project_id: int, project: dict) -> dict | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE projects
                SET title = $1, description = $2, short_description = $3, type = $4, technologies = $5,
                    github_url = $6, live_url = $7, video_url = $8, featured = $9, active = $10, "order" = $11
                WHERE id = $12
                RETURNING {PROJECT_COLUMNS}
                """,
                project["title"],
                project["description"],
                project.get("short_description"),
                project["type"],
                project.get("technologies", []),
                project.get("github_url"),
                project.get("live_url"),
                project.get("video_url"),
                project.get("featured", False),
                project.get("active", True),
                project.get("order", 0),
                project_id,
            )
        return serialize_row(row) if row else None

    async def delete_project(self, project_id: int) -> bool:
        async with self.pool.acquire() as conn:
            status = await conn.execute("DELETE FROM projects WHERE id = $1", project_id)
        return affected_rows(status) > 0

    async def set_project_active(self, project_id: int, active: bool) -> bool:
        async with self.pool.acquire() as conn:
            status = await conn.execute("UPDATE projects SET active = $1 WHERE id = $2", active, project_id)
        return affected_rows(status) > 0

    async def get_project_stats(self) -> dict:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT COUNT(*) AS total, COUNT(*) FILTER (WHERE active) AS active FROM projects"
            )
        return {"total": row["total"], "active": row["active"]}

    # --- skills ---

    async def get_skills(self) -> list[dict]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f'SELECT {SKILL_COLUMNS} FROM skills ORDER BY "order", name')
        return [serialize_row(row) for row in rows]

    async def get_skill(self, skill_id: int) -> dict | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT {SKILL_COLUMNS} FROM skills WHERE id = $1", skill_id)
        return serialize_row(row) if row else None

    async def create_skill(self, skill: dict) -> dict:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO skills (name, category, proficiency, icon, "order")
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {SKILL_COLUMNS}
                """,
                skill["name"],
                skill["category"],
                skill["proficiency"],
                skill.get("icon"),
                skill.get("order", 0),
            )
        return serialize_row(row)

    async def update_skill(self, skill_id: int, skill: dict) -> dict | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE skills
                SET name = $1, category = $2, proficiency = $3, icon = $4, "order" = $5
                WHERE id = $6
                RETURNING {SKILL_COLUMNS}
                """,
                skill["name"],
                skill["category"],
                skill["proficiency"],
                skill.get("icon"),
                skill.get("order", 0),
                skill_id,
            )
        return serialize_row(row) if row else None

    async def delete_skill(self, skill_id: int) -> bool:
        async with self.pool.acquire() as conn:
            status = await conn.execute("DELETE FROM skills WHERE id = $1", skill_id)
        return affected_rows(status) > 0

    # --- experience ---

    async def get_experiences(self, active_only: bool = True) -> list[dict]:
        query = f"SELECT {EXPERIENCE_COLUMNS} FROM experience"
        if active_only:
            query += " WHERE active = TRUE"
        query += ' ORDER BY "order" DESC, start_date DESC'
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query)
        return [serialize_row(row) for row in rows]

    async def get_experience(self, experience_id: int, active_only: bool = True) -> dict | None:
        query = f"SELECT {EXPERIENCE_COLUMNS} FROM experience WHERE id = $1"
        if active_only:
            query += " AND active = TRUE"
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, experience_id)
        return serialize_row(row) if row else None

    async def create_experience(self, experience: dict) -> dict:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO experience (title, company, start_date, end_date, current, description,
                                        technologies, "order", active)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {EXPERIENCE_COLUMNS}
                """,
                experience["title"],
                experience["company"],
                experience["start_date"],
                experience.get("end_date"),
                experience.get("current", False),
                experience.get("description"),
                experience.get("technologies", []),
                experience.get("order", 0),
                experience.get("active", True),
            )
        return serialize_row(row)

    async def update_experience(self, experience_id: int, experience: dict) -> dict | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE experience
                SET title = $1, company = $2, start_date = $3, end_date = $4, current = $5,
                    description = $6, technologies = $7, "order" = $8, active = $9
                WHERE id = $10
                RETURNING {EXPERIENCE_COLUMNS}
                """,
                experience["title"],
                experience["company"],
                experience["start_date"],
                experience.get("end_date"),
                experience.get("current", False),
                experience.get("description"),
                experience.get("technologies", []),
                experience.get("order", 0),
                experience.get("active", True),
                experience_id,
            )
        return serialize_row(row) if row else None

    async def delete_experience(self, experience_id: int) -> bool:
        async with self.pool.acquire() as conn:
            status = await conn.execute("DELETE FROM experience WHERE id = $1", experience_id)
        return affected_rows(status) > 0

    # --- content ---

    async def get_contents(self) -> list[dict]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT id, key, value FROM content ORDER BY key, id")
        return [serialize_row(row) for row in rows]

    async def get_content(self, key: str) -> dict | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT id, key, value FROM content WHERE key = $1", key)
        return serialize_row(row) if row else None

    async def create_content(self, key: str, value: dict) -> dict | None:
        """Insert a content row; None when the key already exists."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO content (key, value) VALUES ($1, $2)
                ON CONFLICT (key) DO NOTHING
                RETURNING id, key, value
                """,
                key,
                value,
            )
        return serialize_row(row) if row else None

    async def update_content(self, content_id: int, key: str, value: dict) -> dict | None:
        """Update by id; raises DuplicateKeyError when renaming onto a taken key."""
        async with self.pool.acquire() as conn:
            try:
                row = await conn.fetchrow(
                    "UPDATE content SET key = $1, value = $2 WHERE id = $3 RETURNING id, key, value",
                    key,
                    value,
                    content_id,
                )
            except asyncpg.UniqueViolationError:
                raise DuplicateKeyError(key) from None
        return serialize_row(row) if row else None

    async def delete_content(self, content_id: int) -> dict | None:
        """Delete by id and return the removed row (its key drives cache invalidation)."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "DELETE FROM content WHERE id = $1 RETURNING id, key, value", content_id
            )
        return serialize_row(row) if row else None

    async def merge_content(self, key: str, value: dict) -> dict:
        """Upsert a content row, merging top-level fields into the existing JSON value."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO content (key, value) VALUES ($1, $2)
                ON CONFLICT (key) DO UPDATE SET value = content.value || EXCLUDED.value
                RETURNING id, key, value
                """,
                key,
                value,
            )
        return serialize_row(row)

    # --- analytics ---

    async def track_visit(self, ip: str, user_agent: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO visitors (ip, user_agent, first_visit, last_visit, visit_count)
                VALUES ($1, $2, NOW(), NOW(), 1)
                ON CONFLICT (ip) DO UPDATE SET
                    last_visit = NOW(),
                    user_agent = EXCLUDED.user_agent,
                    visit_count = visitors.visit_count + 1
                """,
                ip,
                user_agent,
            )

    async def track_project_view(self, project_id: int, ip: str, user_agent: str, referrer: str | None) -> bool:
        """Record a project view; False when the project does not exist."""
        async with self.pool.acquire() as conn:
            status = await conn.execute(
                """
                INSERT INTO project_views (project_id, ip, user_agent, referrer)
                SELECT id, $2, $3, $4 FROM projects WHERE id = $1
                """,
                project_id,
                ip,
                user_agent,
                referrer,
            )
        return affected_rows(status) > 0
