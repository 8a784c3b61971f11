"""
Optional Supabase persistence for generated suites.

Rows live in the ``instructional_suites`` table. Sections are stored as
jsonb in their wire (camelCase) form so the web client can read them back
unchanged. The teacher key is derived again on load.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import AsyncClient, create_async_client

from .config import Settings
from .models import InstructionalSuite

logger = logging.getLogger(__name__)

SUITES_TABLE = "instructional_suites"


def suite_to_row(suite: InstructionalSuite) -> Dict[str, Any]:
    wire = suite.to_wire()
    return {
        "id": suite.id,
        "node_id": suite.node_id,
        "title": suite.title,
        "output_type": suite.output_type.value,
        "bloom_level": suite.bloom_level.value,
        "differentiation": suite.differentiation.value,
        "aesthetic": suite.aesthetic.value,
        "institution_name": suite.institution_name,
        "instructor_name": suite.instructor_name,
        "sections": wire.get("sections", []),
        "doodle_base64": suite.doodle_base64 or None,
        "doodle_prompt": suite.doodle_prompt,
        "created_at": (suite.created_at or datetime.now(timezone.utc)).isoformat(),
    }


def row_to_suite(row: Dict[str, Any]) -> InstructionalSuite:
    # Column names are the snake_case field names; populate_by_name accepts them
    data = {k: v for k, v in row.items() if v is not None and k not in ("user_id", "updated_at")}
    return InstructionalSuite.model_validate(data)


class SuiteRepository:
    """Saves and loads suites. The client is created lazily on first use."""

    def __init__(self, url: str, key: str, client: Optional[AsyncClient] = None):
        self._url = url
        self._key = key
        self._client = client

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await create_async_client(self._url, self._key)
        return self._client

    async def save_suite(self, suite: InstructionalSuite) -> InstructionalSuite:
        client = await self._get_client()
        await client.table(SUITES_TABLE).upsert(suite_to_row(suite)).execute()
        logger.info("Saved suite %s", suite.id)
        return suite

    async def load_suites(self, limit: int = 50) -> List[InstructionalSuite]:
        client = await self._get_client()
        res = (
            await client.table(SUITES_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        suites = []
        for row in res.data or []:
            try:
                suites.append(row_to_suite(row))
            except ValueError as e:
                logger.warning("Skipping unreadable suite row %s: %s", row.get("id"), e)
        return suites

    async def delete_suite(self, suite_id: str) -> None:
        client = await self._get_client()
        await client.table(SUITES_TABLE).delete().eq("id", suite_id).execute()
        logger.info("Deleted suite %s", suite_id)


_repository: Optional[SuiteRepository] = None


def get_suite_repository(settings: Settings) -> Optional[SuiteRepository]:
    """Shared repository, or ``None`` when Supabase is not configured."""
    global _repository
    if not settings.supabase_enabled:
        return None
    if _repository is None:
        _repository = SuiteRepository(settings.supabase_url, settings.supabase_key)
    return _repository
