"""Postgres template store and the decoder built on it.

Schema auto-created on first connect:

    templates — one row per (author, namespace, major, minor, patch)
    steps     — ordered steps of a template (``position``), FK → templates

Unlike a cache, the store is the source of truth for resolution: query and
connection failures propagate to the caller instead of being swallowed.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from stepwise.config import settings
from stepwise.errors import DecodeError, TemplateNotFoundError
from stepwise.models.template import Step, Template
from stepwise.models.version import Identity, Version
from stepwise.tools.decoder import apply_decoded

logger = structlog.get_logger(component="template_store")

# ── Schema DDL ───────────────────────────────────────────────────────────────

_DDL = """
CREATE TABLE IF NOT EXISTS templates (
    id          BIGSERIAL PRIMARY KEY,
    description TEXT   NOT NULL DEFAULT '',
    author      TEXT   NOT NULL,
    namespace   TEXT   NOT NULL,
    major       BIGINT NOT NULL DEFAULT 0,
    minor       BIGINT NOT NULL DEFAULT 0,
    patch       BIGINT NOT NULL DEFAULT 0,
    env         JSONB  NOT NULL DEFAULT '{}'
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_uses
    ON templates (author, namespace, major, minor, patch);

CREATE TABLE IF NOT EXISTS steps (
    id          BIGSERIAL PRIMARY KEY,
    template_id BIGINT  NOT NULL REFERENCES templates(id) ON DELETE CASCADE,
    position    INTEGER NOT NULL,
    description TEXT    NOT NULL DEFAULT '',
    author      TEXT    NOT NULL DEFAULT '',
    namespace   TEXT    NOT NULL DEFAULT '',
    major       BIGINT  NOT NULL DEFAULT 0,
    minor       BIGINT  NOT NULL DEFAULT 0,
    patch       BIGINT  NOT NULL DEFAULT 0,
    env         JSONB   NOT NULL DEFAULT '{}',
    skip        TEXT    NOT NULL DEFAULT '',
    uses        TEXT    NOT NULL DEFAULT '',
    method      TEXT    NOT NULL DEFAULT '',
    url         TEXT    NOT NULL DEFAULT '',
    body        TEXT    NOT NULL DEFAULT '',
    header      JSONB   NOT NULL DEFAULT '{}',
    set_env     JSONB,
    out_env     JSONB
);
CREATE INDEX IF NOT EXISTS idx_steps_template ON steps (template_id, position);
"""

_SELECT_TEMPLATE = """
SELECT * FROM templates
WHERE author = $1 AND namespace = $2 AND major = $3 AND minor = $4 AND patch = $5
LIMIT 1
"""

_SELECT_STEPS = "SELECT * FROM steps WHERE template_id = $1 ORDER BY position"

_INSERT_TEMPLATE = """
INSERT INTO templates (description, author, namespace, major, minor, patch, env)
VALUES ($1, $2, $3, $4, $5, $6, $7)
ON CONFLICT (author, namespace, major, minor, patch) DO UPDATE
    SET description = EXCLUDED.description,
        env         = EXCLUDED.env
RETURNING id
"""

_INSERT_STEP = """
INSERT INTO steps (
    template_id, position, description, author, namespace, major, minor, patch,
    env, skip, uses, method, url, body, header, set_env, out_env
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
"""


def _json_column(value: Any, default: Any = None) -> Any:
    """asyncpg returns JSONB as text unless a codec is installed."""
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def _dump_json(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def row_to_step(row: dict[str, Any]) -> Step:
    """Build a Step from a ``steps`` row."""
    return Step.model_validate(
        {
            "description": row.get("description") or "",
            "author": row.get("author") or "",
            "namespace": row.get("namespace") or "",
            "version": Version(row.get("major") or 0, row.get("minor") or 0, row.get("patch") or 0),
            "env": _json_column(row.get("env"), {}),
            "skip": row.get("skip") or "",
            "uses": row.get("uses") or "",
            "method": row.get("method") or "",
            "url": row.get("url") or "",
            "body": row.get("body") or "",
            "header": _json_column(row.get("header"), {}),
            "set": _json_column(row.get("set_env")),
            "out": _json_column(row.get("out_env")),
        }
    )


def row_to_template(row: dict[str, Any], step_rows: list[dict[str, Any]]) -> Template:
    """Build a Template from a ``templates`` row and its ordered ``steps`` rows."""
    return Template(
        description=row.get("description") or "",
        author=row["author"],
        namespace=row["namespace"],
        version=Version(row["major"], row["minor"], row["patch"]),
        env=_json_column(row.get("env"), {}),
        steps=[row_to_step(r) for r in step_rows],
    )


class TemplateStore:
    """Async Postgres access for templates, using an asyncpg pool.

    Usage:
        store = TemplateStore()
        await store.connect()   # creates pool + runs DDL
        template = await store.fetch(Identity.parse("acme/login@v1.0.0"))
        await store.close()
    """

    def __init__(self, dsn: str | None = None, pool: Any = None) -> None:
        self.dsn = dsn or settings.postgres_url
        self._pool = pool

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Create the connection pool and ensure the schema exists (idempotent)."""
        if self._pool is not None:
            return
        import asyncpg

        self._pool = await asyncpg.create_pool(dsn=self.dsn, min_size=1, max_size=5, command_timeout=10)
        logger.info("pg_connected", dsn=self._redacted_dsn())
        async with self._pool.acquire() as conn:
            await conn.execute(_DDL)
        logger.info("pg_schema_ready", tables=["templates", "steps"])

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> "TemplateStore":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Queries ───────────────────────────────────────────────────────────

    async def fetch(self, identity: Identity) -> Template | None:
        """Fetch a template and its steps, or None if no row matches."""
        await self.connect()
        v = identity.version
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                _SELECT_TEMPLATE, identity.author, identity.namespace, v.major, v.minor, v.patch
            )
            if row is None:
                return None
            step_rows = await conn.fetch(_SELECT_STEPS, row["id"])
        return row_to_template(dict(row), [dict(r) for r in step_rows])

    async def save(self, template: Template) -> int:
        """Insert or replace a template with its steps. Returns the template id."""
        await self.connect()
        v = template.version
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                template_id = await conn.fetchval(
                    _INSERT_TEMPLATE,
                    template.description,
                    template.author,
                    template.namespace,
                    v.major,
                    v.minor,
                    v.patch,
                    json.dumps(template.env),
                )
                await conn.execute("DELETE FROM steps WHERE template_id = $1", template_id)
                for position, step in enumerate(template.steps):
                    sv = step.version
                    await conn.execute(
                        _INSERT_STEP,
                        template_id,
                        position,
                        step.description,
                        step.author,
                        step.namespace,
                        sv.major,
                        sv.minor,
                        sv.patch,
                        json.dumps(step.env),
                        step.skip,
                        step.uses,
                        step.method,
                        step.url,
                        step.body,
                        json.dumps(step.header),
                        _dump_json(step.set_),
                        _dump_json(step.out),
                    )
        logger.info("template_saved", identity=str(template.identity), steps=len(template.steps))
        return template_id

    def _redacted_dsn(self) -> str:
        """Log-safe DSN (hides password if present)."""
        return re.sub(r":([^@/]+)@", ":***@", self.dsn)


class StoreDecoder:
    """Decoder that resolves ``author/namespace@vX.Y.Z`` against a TemplateStore."""

    def __init__(self, store: TemplateStore) -> None:
        self.store = store

    async def load(self, identity: str, target: Template) -> None:
        key = Identity.parse(identity)
        try:
            decoded = await self.store.fetch(key)
        except (ValueError, TypeError) as exc:
            raise DecodeError(f'invalid stored template "{identity}": {exc}') from exc
        if decoded is None:
            raise TemplateNotFoundError(f'template uses not found: "{identity}"')
        apply_decoded(target, decoded)
        logger.debug("template_decoded", identity=identity, steps=len(decoded.steps))
