"""Feedback and testimonial storage in the Supabase ``feedback`` table.

Every operation is fail-soft: errors are logged and reported through an empty
return value instead of being raised.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from dentalsync.models.appointment import utcnow
from dentalsync.models.feedback import (
    HOMEPAGE_MIN_RATING,
    HOMEPAGE_TESTIMONIAL_LIMIT,
    FeedbackCreate,
    FeedbackUpdate,
    Testimonial,
)
from dentalsync.sync.backends import REMOTE_ERRORS

logger = logging.getLogger(__name__)

FEEDBACK_TABLE = 'feedback'


def is_homepage_eligible(row: dict) -> bool:
    return (
        row.get('show_on_homepage') is True
        and (row.get('rating') or 0) >= HOMEPAGE_MIN_RATING
        and bool((row.get('comments') or '').strip())
    )


def _recency_key(row: dict) -> float:
    value = row.get('created_at')
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    else:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


class FeedbackStore:
    def __init__(self, client: Any | None, table_name: str = FEEDBACK_TABLE):
        self.client = client
        self.table_name = table_name

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    def _table(self):
        return self.client.table(self.table_name)

    async def save(self, data: FeedbackCreate) -> dict | None:
        if not self.is_connected:
            logger.warning('Supabase not connected, cannot save feedback to cloud.')
            return None

        try:
            response = await self._table().insert(data.to_row()).execute()
        except REMOTE_ERRORS:
            logger.exception('Error saving feedback to Supabase.')
            return None

        if not response.data:
            logger.error('Saving feedback returned no row.')
            return None
        logger.info('Feedback saved to Supabase with id %s.', response.data[0].get('id'))
        return response.data[0]

    async def load_homepage_testimonials(self) -> list[Testimonial]:
        if not self.is_connected:
            logger.warning('Supabase not connected, cannot load testimonials from cloud.')
            return []

        try:
            response = await (
                self._table()
                .select('*')
                .eq('show_on_homepage', True)
                .gte('rating', HOMEPAGE_MIN_RATING)
                .neq('comments', '')
                .order('rating', desc=True)
                .order('created_at', desc=True)
                .limit(HOMEPAGE_TESTIMONIAL_LIMIT)
                .execute()
            )
        except REMOTE_ERRORS:
            logger.exception('Error loading testimonials.')
            return []

        rows = [row for row in response.data or [] if is_homepage_eligible(row)]
        rows.sort(key=lambda row: (row['rating'], _recency_key(row)), reverse=True)

        testimonials = []
        for row in rows[:HOMEPAGE_TESTIMONIAL_LIMIT]:
            try:
                testimonials.append(Testimonial.model_validate(row))
            except ValidationError:
                logger.warning('Skipping malformed feedback row %s.', row.get('id'))
        return testimonials

    async def load_all(self) -> list[dict]:
        if not self.is_connected:
            return []

        try:
            response = await self._table().select('*').order('created_at', desc=True).execute()
        except REMOTE_ERRORS:
            logger.exception('Error loading all feedback.')
            return []
        return response.data or []

    async def update(self, feedback_id: int, fields: FeedbackUpdate) -> dict | None:
        if not self.is_connected:
            return None

        row = fields.to_row()
        row['updated_at'] = utcnow().isoformat()
        try:
            response = await self._table().update(row).eq('id', feedback_id).execute()
        except REMOTE_ERRORS:
            logger.exception('Error updating feedback %s.', feedback_id)
            return None

        if not response.data:
            logger.warning('Feedback %s not found for update.', feedback_id)
            return None
        return response.data[0]

    async def delete(self, feedback_id: int) -> bool:
        if not self.is_connected:
            return False

        try:
            response = await self._table().delete().eq('id', feedback_id).execute()
        except REMOTE_ERRORS:
            logger.exception('Error deleting feedback %s.', feedback_id)
            return False
        return bool(response.data)

    async def sync_local_to_remote(self, items: Iterable[FeedbackCreate]) -> int:
        if not self.is_connected:
            return 0

        synced = 0
        for item in items:
            if await self.save(item) is not None:
                synced += 1
        logger.info('Synced %d feedback records to Supabase.', synced)
        return synced
