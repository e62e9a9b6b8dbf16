"""Synchronization policy between the in-memory tracker and a storage backend.

Writes are optimistic: the tracker is updated and persisted locally first,
then the backend is asked to store the change. A canonical row returned by the
backend replaces the provisional local record, matched by appointment code.
"""

import logging
from dataclasses import dataclass

from dentalsync.models.appointment import STATUS_CONFIRMED, Appointment, AppointmentCreate
from dentalsync.sync.backends import AppointmentBackend, RemoteSyncError
from dentalsync.sync.notifications import Notifier
from dentalsync.sync.tracker import AppointmentTracker

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    synced: int = 0
    failed: int = 0
    connected: bool = True


class AppointmentSync:
    def __init__(self, tracker: AppointmentTracker, backend: AppointmentBackend, notifier: Notifier):
        self.tracker = tracker
        self.backend = backend
        self.notifier = notifier
        # Snapshot writes happen on a worker thread via tracker.flush().
        self.tracker.defer_writes = True
        if backend.is_remote:
            self.tracker.newest_first = True

    @property
    def is_remote(self) -> bool:
        return self.backend.is_remote

    def all(self) -> list[Appointment]:
        return self.tracker.all()

    async def load(self) -> None:
        if not self.backend.is_remote:
            logger.info('Appointment sync running in local-only mode.')
            return

        try:
            appointments = await self.backend.fetch_all()
        except RemoteSyncError:
            logger.exception('Error loading appointments from Supabase.')
            return

        if not appointments:
            return

        self.tracker.replace_all(appointments)
        await self.tracker.flush()
        logger.info('Loaded %d appointments from Supabase.', len(appointments))
        self.notifier.appointments_changed()

    async def add(self, data: AppointmentCreate) -> Appointment:
        appointment = self.tracker.add(data)
        await self.tracker.flush()

        try:
            canonical = await self.backend.insert(appointment)
        except RemoteSyncError:
            logger.exception('Error saving appointment %s to Supabase.', appointment.appointment_id)
            self.notifier.show('Saved locally (cloud sync failed)', 'warning')
        else:
            if canonical is not None:
                self.tracker.replace_by_code(canonical)
                await self.tracker.flush()
                appointment = canonical
                logger.info('Appointment %s saved to Supabase with id %s.', appointment.appointment_id, appointment.id)

        self.notifier.appointment_created(appointment)
        return appointment

    async def update_status(self, appointment_id: int, status: str, notes: str = '') -> Appointment | None:
        existing = self.tracker.get(appointment_id)
        if existing is None:
            return None

        previous_status = existing.status
        appointment = self.tracker.update_status(appointment_id, status, notes)
        await self.tracker.flush()

        try:
            canonical = await self.backend.update_status(appointment)
        except RemoteSyncError:
            logger.exception('Error updating appointment %s in Supabase.', appointment.appointment_id)
        else:
            if canonical is not None:
                self.tracker.replace_by_code(canonical)
                await self.tracker.flush()
                appointment = canonical
                logger.info('Status of appointment %s updated in Supabase.', appointment.appointment_id)

        self.notifier.appointments_changed()
        self.notifier.show(f'Appointment status updated to {status}', 'success')

        if status == STATUS_CONFIRMED and previous_status != STATUS_CONFIRMED:
            self.notifier.appointment_confirmed(appointment)

        return appointment

    async def sync_all(self) -> SyncReport:
        if not self.backend.is_remote:
            self.notifier.show('Supabase not connected', 'error')
            return SyncReport(connected=False)

        self.notifier.show('Syncing to cloud...', 'info')
        report = SyncReport()

        for appointment in self.tracker.all():
            try:
                canonical = await self.backend.upsert_by_code(appointment)
            except RemoteSyncError:
                logger.exception('Sync error for appointment %s.', appointment.appointment_id)
                report.failed += 1
            else:
                report.synced += 1
                if canonical is not None:
                    self.tracker.replace_by_code(canonical)

        await self.tracker.flush()
        if report.synced:
            self.notifier.appointments_changed()

        if report.failed == 0:
            self.notifier.show(f'Synced {report.synced} appointments to cloud', 'success')
        else:
            self.notifier.show(f'Synced {report.synced}, failed {report.failed}', 'warning')
        return report
