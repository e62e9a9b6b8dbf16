from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, field_validator

from dentalsync.models.appointment import Appointment, AppointmentCreate
from dentalsync.sync.appointment_sync import AppointmentSync

router = APIRouter(tags=['appointments'])

MAX_STATUS_NOTES_LENGTH = 600


class UpdateStatusRequest(BaseModel):
    status: str
    notes: str = ''

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Status is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) > MAX_STATUS_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_STATUS_NOTES_LENGTH} characters or fewer.')
        return normalized


class SyncReportResponse(BaseModel):
    synced: int
    failed: int


def get_appointment_sync(request: Request) -> AppointmentSync:
    return request.app.state.appointment_sync


@router.get('', response_model=list[Appointment])
async def list_appointments(sync: AppointmentSync = Depends(get_appointment_sync)):
    return sync.all()


@router.post('', response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(data: AppointmentCreate, sync: AppointmentSync = Depends(get_appointment_sync)):
    return await sync.add(data)


@router.patch('/{appointment_id}/status', response_model=Appointment)
async def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    sync: AppointmentSync = Depends(get_appointment_sync),
):
    appointment = await sync.update_status(appointment_id, data.status, data.notes)
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


@router.post('/sync', response_model=SyncReportResponse)
async def sync_appointments(sync: AppointmentSync = Depends(get_appointment_sync)):
    report = await sync.sync_all()
    if not report.connected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Supabase not connected.',
        )
    return SyncReportResponse(synced=report.synced, failed=report.failed)
