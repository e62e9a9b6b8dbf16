"""Feedback model definitions."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

MIN_RATING = 1
MAX_RATING = 5
HOMEPAGE_MIN_RATING = 4
HOMEPAGE_TESTIMONIAL_LIMIT = 6


def parse_appointment_reference(value) -> int | None:
    """Return ``value`` as an appointments.id reference, or None when it is not an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


class FeedbackCreate(BaseModel):
    appointment_id: int | str | None = None
    patient_name: str
    phone: str | None = None
    service: str = 'General'
    appointment_date: date | None = None
    rating: int = Field(ge=MIN_RATING, le=MAX_RATING)
    categories: list[str] = Field(default_factory=list)
    comments: str = ''
    recommend: bool | None = None
    source: str = 'in-clinic'
    internal_notes: str = ''
    show_on_homepage: bool = False
    created_by: str = 'Admin'

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator('patient_name')
    @classmethod
    def validate_patient_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient name is required.')
        return normalized

    def to_row(self) -> dict:
        row = {
            'patient_name': self.patient_name,
            'phone': self.phone or None,
            'service': self.service or 'General',
            'appointment_date': self.appointment_date.isoformat() if self.appointment_date else None,
            'rating': self.rating,
            'categories': list(self.categories),
            'comments': self.comments or '',
            'recommend': self.recommend,
            'source': self.source or 'in-clinic',
            'internal_notes': self.internal_notes or '',
            'show_on_homepage': self.show_on_homepage,
            'created_by': self.created_by or 'Admin',
        }
        appointment_ref = parse_appointment_reference(self.appointment_id)
        if appointment_ref is not None:
            row['appointment_id'] = appointment_ref
        return row


class FeedbackUpdate(BaseModel):
    """Partial admin edit; only fields that were supplied are sent."""
    rating: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    categories: list[str] | None = None
    comments: str | None = None
    recommend: bool | None = None
    source: str | None = None
    internal_notes: str | None = None
    show_on_homepage: bool | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_row(self) -> dict:
        return self.model_dump(exclude_unset=True)


class Testimonial(BaseModel):
    patient_name: str
    service: str | None = None
    rating: int
    comments: str
    created_at: datetime | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
