import logging
from typing import Protocol

from dentalsync.models.appointment import Appointment

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def show(self, message: str, level: str = 'info') -> None: ...

    def appointment_created(self, appointment: Appointment) -> None: ...

    def appointment_confirmed(self, appointment: Appointment) -> None: ...

    def appointments_changed(self) -> None: ...


_LEVELS = {
    'success': logging.INFO,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


class LoggingNotifier:
    """Notifier that writes every notification to the operator log."""

    def show(self, message: str, level: str = 'info') -> None:
        logger.log(_LEVELS.get(level, logging.INFO), 'Notification (%s): %s', level, message)

    def appointment_created(self, appointment: Appointment) -> None:
        logger.info(
            'New appointment %s for %s (%s on %s).',
            appointment.appointment_id,
            appointment.name,
            appointment.service,
            appointment.appointment_date.isoformat(),
        )

    def appointment_confirmed(self, appointment: Appointment) -> None:
        logger.info('Confirmation notice queued for appointment %s.', appointment.appointment_id)

    def appointments_changed(self) -> None:
        logger.debug('Appointment list changed.')
