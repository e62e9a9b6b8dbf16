import asyncio
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from dentalsync.models.appointment import AppointmentCreate
from dentalsync.routes.appointment_routes import (
    UpdateStatusRequest,
    create_appointment,
    get_appointment_sync,
    list_appointments,
    sync_appointments,
    update_appointment_status,
)
from dentalsync.sync.appointment_sync import AppointmentSync
from dentalsync.sync.backends import select_backend


@pytest.fixture
def local_sync(tracker, notifier) -> AppointmentSync:
    return AppointmentSync(tracker, select_backend(None), notifier)


def _booking() -> AppointmentCreate:
    return AppointmentCreate.model_validate(
        {'name': ' Ana ', 'phone': '555', 'service': 'Cleaning', 'date': '2024-01-01', 'message': '  '}
    )


def test_appointment_create_normalizes_fields() -> None:
    data = _booking()

    assert data.name == 'Ana'
    assert data.message is None


def test_appointment_create_rejects_blank_name() -> None:
    with pytest.raises(ValidationError):
        AppointmentCreate.model_validate({'name': ' ', 'phone': '555', 'service': 'Cleaning', 'date': '2024-01-01'})


def test_update_status_request_normalizes_status() -> None:
    assert UpdateStatusRequest(status=' Confirmed ').status == 'confirmed'


def test_update_status_request_rejects_blank_status() -> None:
    with pytest.raises(ValidationError):
        UpdateStatusRequest(status='   ')


def test_get_appointment_sync_reads_application_state(local_sync) -> None:
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(appointment_sync=local_sync)))

    assert get_appointment_sync(request) is local_sync


def test_create_and_list_appointments(local_sync) -> None:
    created = asyncio.run(create_appointment(_booking(), sync=local_sync))
    listed = asyncio.run(list_appointments(sync=local_sync))

    assert [a.appointment_id for a in listed] == [created.appointment_id]
    assert created.model_dump(by_alias=True)['appointmentId'] == created.appointment_id


def test_update_appointment_status_returns_not_found(local_sync) -> None:
    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(update_appointment_status(99, UpdateStatusRequest(status='confirmed'), sync=local_sync))

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found.'


def test_update_appointment_status_updates_record(local_sync) -> None:
    created = asyncio.run(create_appointment(_booking(), sync=local_sync))

    updated = asyncio.run(
        update_appointment_status(created.id, UpdateStatusRequest(status='completed', notes='done'), sync=local_sync)
    )

    assert (updated.status, updated.notes) == ('completed', 'done')


def test_sync_appointments_requires_remote(local_sync) -> None:
    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(sync_appointments(sync=local_sync))

    assert exception_info.value.status_code == 503


def test_sync_appointments_returns_report(tracker, notifier, fake_supabase) -> None:
    remote_sync = AppointmentSync(tracker, select_backend(fake_supabase), notifier)
    tracker.add(_booking())

    response = asyncio.run(sync_appointments(sync=remote_sync))

    assert (response.synced, response.failed) == (1, 0)
