class RentalError(Exception):
    """
    Base for every failure a rental transition can report.

    `code` is a stable machine-readable name; the message is meant for humans.
    """

    code = "rental_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ---- validation (bad input, never retried) ----

class ValidationError(RentalError):
    code = "validation_error"
    status_code = 400


class InvalidDateRange(ValidationError):
    code = "invalid_date_range"


class InvalidNewEndDate(ValidationError):
    code = "invalid_new_end_date"


# ---- wrong status for the requested transition ----

class StateConflictError(RentalError):
    code = "state_conflict"
    status_code = 409


class NotPending(StateConflictError):
    code = "not_pending"


class NotInProgress(StateConflictError):
    code = "not_in_progress"


class InProgressCannotCancel(StateConflictError):
    code = "in_progress_cannot_cancel"


class CustomerHasActiveReservation(StateConflictError):
    code = "customer_has_active_reservation"


# ---- resource occupied or flagged unavailable ----

class ResourceUnavailableError(RentalError):
    code = "resource_unavailable"
    status_code = 409


# ---- unknown ids ----

class NotFoundError(RentalError):
    code = "not_found"
    status_code = 404


class ReservationNotFound(NotFoundError):
    code = "reservation_not_found"

    def __init__(self, reservation_id: int):
        super().__init__(f"Rental {reservation_id} not found")
        self.reservation_id = reservation_id


class ResourceNotFound(NotFoundError):
    code = "resource_not_found"


class CustomerNotFound(NotFoundError):
    code = "customer_not_found"

    def __init__(self, customer_id: int):
        super().__init__(f"Customer {customer_id} not found")
        self.customer_id = customer_id


class ResourceMissing(NotFoundError):
    code = "resource_missing"

    def __init__(self, reservation_id: int):
        super().__init__(f"Vehicle not found for rental {reservation_id}")
        self.reservation_id = reservation_id


# ---- infrastructure ----

class ConcurrencyConflictError(RentalError):
    """Lock wait exceeded or serialization failure. Safe to re-run the whole transition."""

    code = "concurrency_conflict"
    status_code = 503


class DependencyFailure(RentalError):
    code = "dependency_failure"
    status_code = 503
