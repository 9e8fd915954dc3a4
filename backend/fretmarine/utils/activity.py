"""Audit trail writer.

Every committed mutation of the facade leaves one ActivityLog row,
added to the session of the operation itself so it commits or rolls
back together with the change it describes.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.models.activity_log import ActivityLog


async def log_activity(
    db: AsyncSession,
    actor_id: str | None,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    db.add(
        ActivityLog(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_code=entity_code,
            summary=summary,
            details=details,
        )
    )
