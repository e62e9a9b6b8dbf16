"""Appointment model definitions."""

from datetime import date, datetime, timezone

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

STATUS_PENDING = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_CANCELLED = 'cancelled'
STATUS_COMPLETED = 'completed'
KNOWN_STATUSES = {STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_COMPLETED}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(BaseModel):
    """A booking as held in memory and in the local snapshot."""
    id: int
    appointment_id: str
    name: str
    phone: str
    email: str | None = None
    service: str
    appointment_date: date
    message: str = ''
    status: str = STATUS_PENDING
    notes: str = ''
    created_at: datetime
    updated_at: datetime
    synced: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class AppointmentCreate(BaseModel):
    name: str
    phone: str
    email: str | None = None
    service: str
    appointment_date: date = Field(validation_alias=AliasChoices('date', 'appointmentDate', 'appointment_date'))
    message: str | None = None

    @field_validator('name', 'phone', 'service')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Field is required.')
        return normalized

    @field_validator('email', 'message')
    @classmethod
    def normalize_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


def appointment_from_row(row: dict) -> Appointment:
    """Build an in-memory appointment from an ``appointments`` table row."""
    created_at = row.get('created_at') or utcnow()
    return Appointment(
        id=row['id'],
        appointment_id=row['appointment_id'],
        name=row['name'],
        phone=row['phone'],
        email=row.get('email'),
        service=row['service'],
        appointment_date=row['appointment_date'],
        message=row.get('message') or '',
        status=row.get('status') or STATUS_PENDING,
        notes=row.get('notes') or '',
        created_at=created_at,
        updated_at=row.get('updated_at') or created_at,
        synced=True,
    )


def appointment_to_row(appointment: Appointment) -> dict:
    """Translate an appointment into the mutable columns of its table row."""
    return {
        'appointment_id': appointment.appointment_id,
        'name': appointment.name,
        'phone': appointment.phone,
        'email': appointment.email,
        'service': appointment.service,
        'appointment_date': appointment.appointment_date.isoformat(),
        'message': appointment.message or '',
        'status': appointment.status,
        'notes': appointment.notes or '',
    }
