"""In-memory appointment collection backed by the encrypted local store."""

import asyncio
import logging
import secrets
from collections.abc import Iterable

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from dentalsync.models.appointment import (
    STATUS_PENDING,
    Appointment,
    AppointmentCreate,
    utcnow,
)
from dentalsync.sync.local_store import LocalStore

logger = logging.getLogger(__name__)

APPOINTMENTS_SNAPSHOT_KEY = 'appointments'
APPOINTMENT_CODE_PREFIX = 'APT'


class AppointmentTracker:
    """Ordered collection of appointments with local persistence only.

    With ``newest_first`` set, new records go to the front so the list keeps
    the created_at-descending order of a remote load. With ``defer_writes``
    set, ``persist`` only records the snapshot and ``flush`` writes it from
    a worker thread.
    """

    def __init__(self, store: LocalStore):
        self.store = store
        self.appointments: list[Appointment] = []
        self.next_id = 1
        self.newest_first = False
        self.defer_writes = False
        self._pending_snapshot: list[dict] | None = None
        self._flush_lock = asyncio.Lock()
        self._restore()

    def _restore(self) -> None:
        raw_records = self.store.load(APPOINTMENTS_SNAPSHOT_KEY, default=[])
        restored: list[Appointment] = []
        for raw in raw_records or []:
            try:
                restored.append(Appointment.model_validate(raw))
            except ValidationError:
                logger.warning('Skipping unreadable appointment in local snapshot.')
        self.appointments = restored
        self._recompute_next_id()

    def _recompute_next_id(self) -> None:
        self.next_id = max((appointment.id for appointment in self.appointments), default=0) + 1

    def persist(self) -> None:
        payload = [appointment.model_dump(mode='json', by_alias=True) for appointment in self.appointments]
        if self.defer_writes:
            self._pending_snapshot = payload
            return
        self._write_snapshot(payload)

    def _write_snapshot(self, payload: list[dict]) -> None:
        try:
            self.store.save(APPOINTMENTS_SNAPSHOT_KEY, payload)
        except SQLAlchemyError:
            logger.exception('Could not persist appointments to the local store.')

    async def flush(self) -> None:
        """Write the latest deferred snapshot without blocking the event loop."""
        async with self._flush_lock:
            payload, self._pending_snapshot = self._pending_snapshot, None
            if payload is not None:
                await run_in_threadpool(self._write_snapshot, payload)

    def _insert(self, appointment: Appointment) -> None:
        if self.newest_first:
            self.appointments.insert(0, appointment)
        else:
            self.appointments.append(appointment)

    def generate_appointment_code(self) -> str:
        date_part = utcnow().strftime('%Y%m%d')
        while True:
            code = f'{APPOINTMENT_CODE_PREFIX}-{date_part}-{secrets.token_hex(3).upper()}'
            if self.find_by_code(code) is None:
                return code

    def all(self) -> list[Appointment]:
        return list(self.appointments)

    def get(self, appointment_id: int) -> Appointment | None:
        return next((a for a in self.appointments if a.id == appointment_id), None)

    def find_by_code(self, code: str) -> Appointment | None:
        return next((a for a in self.appointments if a.appointment_id == code), None)

    def add(self, data: AppointmentCreate) -> Appointment:
        now = utcnow()
        appointment = Appointment(
            id=self.next_id,
            appointment_id=self.generate_appointment_code(),
            name=data.name,
            phone=data.phone,
            email=data.email,
            service=data.service,
            appointment_date=data.appointment_date,
            message=data.message or '',
            status=STATUS_PENDING,
            created_at=now,
            updated_at=now,
        )
        self.next_id += 1
        self._insert(appointment)
        self.persist()
        return appointment

    def update_status(self, appointment_id: int, status: str, notes: str = '') -> Appointment | None:
        appointment = self.get(appointment_id)
        if appointment is None:
            return None

        appointment.status = status
        appointment.notes = notes
        appointment.updated_at = utcnow()
        self.persist()
        return appointment

    def replace_all(self, appointments: Iterable[Appointment]) -> None:
        self.appointments = list(appointments)
        self._recompute_next_id()
        self.persist()

    def append(self, appointment: Appointment) -> None:
        self._release_id(appointment.id, keep_code=appointment.appointment_id)
        self._insert(appointment)
        self.next_id = max(self.next_id, appointment.id + 1)
        self.persist()

    def replace_by_code(self, appointment: Appointment) -> None:
        """Swap the entry holding ``appointment``'s code for ``appointment``.

        Any other entry with the same code is dropped and any other entry
        holding the same id is moved to a fresh local id. Appends when the
        code is unknown.
        """
        code = appointment.appointment_id
        index = next(
            (i for i, existing in enumerate(self.appointments) if existing.appointment_id == code),
            None,
        )
        self.appointments = [
            existing for i, existing in enumerate(self.appointments)
            if i == index or existing.appointment_id != code
        ]
        if index is not None:
            index = next(i for i, existing in enumerate(self.appointments) if existing.appointment_id == code)

        self._release_id(appointment.id, keep_code=code)
        if index is None:
            self._insert(appointment)
        else:
            self.appointments[index] = appointment
        self.next_id = max(self.next_id, appointment.id + 1)
        self.persist()

    def replace_by_id(self, appointment: Appointment) -> bool:
        for index, existing in enumerate(self.appointments):
            if existing.id == appointment.id:
                self.appointments[index] = appointment
                self.persist()
                return True
        return False

    def remove(self, appointment_id: int) -> bool:
        remaining = [a for a in self.appointments if a.id != appointment_id]
        removed = len(remaining) != len(self.appointments)
        if removed:
            self.appointments = remaining
            self.persist()
        return removed

    def _release_id(self, appointment_id: int, keep_code: str) -> None:
        # A remote id can land on an id already used by another local record.
        for existing in self.appointments:
            if existing.id == appointment_id and existing.appointment_id != keep_code:
                new_id = max(self.next_id, appointment_id + 1)
                logger.info('Renumbering local appointment %s from id %s to %s.', existing.appointment_id, existing.id, new_id)
                existing.id = new_id
                self.next_id = new_id + 1
