"""Storage backends the appointment sync policy can be built on.

``LocalAppointmentBackend`` keeps everything on the device;
``SupabaseAppointmentBackend`` talks to the ``appointments`` table. Both expose
the same coroutine interface so the policy never branches on the backend type.
"""

import logging
from typing import Any, Protocol

try:
    import httpx
    from postgrest.exceptions import APIError
except ImportError:
    REMOTE_ERRORS: tuple[type[Exception], ...] = ()
else:
    REMOTE_ERRORS = (APIError, httpx.HTTPError)

from dentalsync.models.appointment import Appointment, appointment_from_row, appointment_to_row, utcnow

logger = logging.getLogger(__name__)

APPOINTMENTS_TABLE = 'appointments'


class RemoteSyncError(Exception):
    """A call to the remote backend failed."""


class BackendUnavailable(RemoteSyncError):
    """The backend has no remote store to talk to."""


class AppointmentBackend(Protocol):
    is_remote: bool

    async def fetch_all(self) -> list[Appointment] | None: ...

    async def insert(self, appointment: Appointment) -> Appointment | None: ...

    async def update_status(self, appointment: Appointment) -> Appointment | None: ...

    async def upsert_by_code(self, appointment: Appointment) -> Appointment | None: ...


class LocalAppointmentBackend:
    is_remote = False

    async def fetch_all(self) -> list[Appointment] | None:
        return None

    async def insert(self, appointment: Appointment) -> Appointment | None:
        return None

    async def update_status(self, appointment: Appointment) -> Appointment | None:
        return None

    async def upsert_by_code(self, appointment: Appointment) -> Appointment | None:
        raise BackendUnavailable('Supabase not connected')


class SupabaseAppointmentBackend:
    is_remote = True

    def __init__(self, client: Any, table_name: str = APPOINTMENTS_TABLE):
        self.client = client
        self.table_name = table_name

    def _table(self):
        return self.client.table(self.table_name)

    async def _execute(self, query, action: str):
        try:
            return await query.execute()
        except REMOTE_ERRORS as exc:
            raise RemoteSyncError(f'{action} failed: {exc}') from exc

    async def fetch_all(self) -> list[Appointment] | None:
        response = await self._execute(
            self._table().select('*').order('created_at', desc=True),
            'Loading appointments',
        )
        return [appointment_from_row(row) for row in response.data or []]

    async def insert(self, appointment: Appointment) -> Appointment | None:
        response = await self._execute(
            self._table().insert(appointment_to_row(appointment)),
            f'Inserting appointment {appointment.appointment_id}',
        )
        if not response.data:
            raise RemoteSyncError(f'Insert of appointment {appointment.appointment_id} returned no row')
        return appointment_from_row(response.data[0])

    async def update_status(self, appointment: Appointment) -> Appointment | None:
        response = await self._execute(
            self._table()
            .update({
                'status': appointment.status,
                'notes': appointment.notes,
                'updated_at': utcnow().isoformat(),
            })
            .eq('appointment_id', appointment.appointment_id),
            f'Updating appointment {appointment.appointment_id}',
        )
        if not response.data:
            raise RemoteSyncError(f'Appointment {appointment.appointment_id} does not exist remotely')
        return appointment_from_row(response.data[0])

    async def find_remote_id(self, code: str) -> int | None:
        response = await self._execute(
            self._table().select('id').eq('appointment_id', code).maybe_single(),
            f'Looking up appointment {code}',
        )
        if response is None or not response.data:
            return None
        return response.data['id']

    async def upsert_by_code(self, appointment: Appointment) -> Appointment | None:
        remote_id = await self.find_remote_id(appointment.appointment_id)
        row = appointment_to_row(appointment)

        if remote_id is None:
            response = await self._execute(self._table().insert(row), f'Inserting appointment {appointment.appointment_id}')
        else:
            del row['appointment_id']
            row['updated_at'] = appointment.updated_at.isoformat()
            response = await self._execute(
                self._table().update(row).eq('id', remote_id),
                f'Updating appointment {appointment.appointment_id}',
            )

        if not response.data:
            return None
        return appointment_from_row(response.data[0])


def select_backend(client: Any | None) -> AppointmentBackend:
    if client is None:
        return LocalAppointmentBackend()
    return SupabaseAppointmentBackend(client)
