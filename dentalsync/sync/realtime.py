"""Live updates from the Supabase change feed for the ``appointments`` table.

Realtime callbacks only enqueue typed ``ChangeEvent`` objects; a single task
drains the queue and applies each event to the tracker in arrival order.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from dentalsync.models.appointment import appointment_from_row
from dentalsync.sync.backends import APPOINTMENTS_TABLE
from dentalsync.sync.notifications import Notifier
from dentalsync.sync.tracker import AppointmentTracker

logger = logging.getLogger(__name__)

CHANNEL_NAME = 'appointments-changes'


class ChangeKind(str, enum.Enum):
    INSERT = 'INSERT'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    new: dict | None = None
    old: dict | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> 'ChangeEvent':
        """Parse a realtime postgres_changes payload.

        Accepts both the wire shape (``data.type``/``record``/``old_record``)
        and the client-library shape (``eventType``/``new``/``old``).
        """
        data = payload.get('data', payload)
        kind = data.get('type') or data.get('eventType')
        return cls(
            kind=ChangeKind(str(kind).upper()),
            new=data.get('record') or data.get('new') or None,
            old=data.get('old_record') or data.get('old') or None,
        )


class LiveUpdateListener:
    def __init__(self, tracker: AppointmentTracker, notifier: Notifier):
        self.tracker = tracker
        self.notifier = notifier
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._channel = None

    def publish(self, event: ChangeEvent) -> None:
        self.queue.put_nowait(event)

    def _on_payload(self, payload: dict[str, Any]) -> None:
        try:
            event = ChangeEvent.from_payload(payload)
        except ValueError:
            logger.warning('Ignoring unrecognized realtime payload: %r', payload)
            return
        self.publish(event)

    def _is_same_record(self, appointment_id: int, row: dict) -> bool:
        # An unsynced local record only shares an id with a remote row by accident.
        existing = self.tracker.get(appointment_id)
        if existing is None:
            return False
        return existing.synced or existing.appointment_id == row.get('appointment_id')

    def apply(self, event: ChangeEvent) -> bool:
        """Reconcile one change into the tracker. Returns True when the collection changed."""
        if event.kind is ChangeKind.DELETE:
            old = event.old or {}
            deleted_id = old.get('id')
            if deleted_id is None or not self._is_same_record(deleted_id, old):
                return False
            changed = self.tracker.remove(deleted_id)
        else:
            if not event.new:
                return False
            try:
                appointment = appointment_from_row(event.new)
            except (KeyError, ValidationError):
                logger.warning('Ignoring malformed %s event: %r', event.kind.value, event.new)
                return False

            if event.kind is ChangeKind.INSERT:
                if self._is_same_record(appointment.id, event.new):
                    return False
                if self.tracker.find_by_code(appointment.appointment_id) is not None:
                    self.tracker.replace_by_code(appointment)
                else:
                    self.tracker.append(appointment)
                    self.notifier.appointment_created(appointment)
                changed = True
            elif self._is_same_record(appointment.id, event.new):
                changed = self.tracker.replace_by_id(appointment)
            else:
                changed = False

        if changed:
            logger.info('Applied realtime %s event.', event.kind.value)
            self.notifier.appointments_changed()
        return changed

    async def run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                self.apply(event)
                await self.tracker.flush()
            finally:
                self.queue.task_done()

    async def subscribe(self, client: Any) -> None:
        channel = client.channel(CHANNEL_NAME)
        channel.on_postgres_changes(
            '*',
            schema='public',
            table=APPOINTMENTS_TABLE,
            callback=self._on_payload,
        )
        await channel.subscribe()
        self._channel = channel
        logger.info('Subscribed to realtime changes on %s.', APPOINTMENTS_TABLE)

    async def stop(self) -> None:
        if self._channel is None:
            return
        await self._channel.unsubscribe()
        self._channel = None
