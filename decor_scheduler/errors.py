"""Exceptions raised by the scheduling engine and its store adapter."""

from typing import Optional


class SchedulingError(Exception):
    """Base class for every error this package raises on purpose."""


class ValidationError(SchedulingError):
    """An appointment command carried data the engine refuses to store."""


class StoreError(SchedulingError):
    """The appointment store failed to read or write."""


class AppointmentNotFound(StoreError):
    def __init__(self, tenant_id: int, appointment_id: int):
        super().__init__(f"appointment {appointment_id} not found for tenant {tenant_id}")
        self.tenant_id = tenant_id
        self.appointment_id = appointment_id


class RecurrenceInsertFailed(SchedulingError):
    """
    The base appointment was stored but its generated occurrences were not.

    The base is left in place; callers may retry the series alone using
    ``base_id`` or report the gap to the operator.
    """

    def __init__(self, base_id: int, occurrences: int, cause: Optional[BaseException] = None):
        super().__init__(
            f"appointment {base_id} stored but its {occurrences} recurring occurrence(s) were not"
        )
        self.base_id = base_id
        self.occurrences = occurrences
        self.cause = cause
