from fastapi import HTTPException, status


class ClinicError(HTTPException):
    """Base class for failures surfaced by the booking and billing core."""

    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str = "Request could not be processed"):
        super().__init__(status_code=self.status_code_default, detail=detail)

    @property
    def message(self) -> str:
        return self.detail

    def __str__(self):
        return f"{type(self).__name__}: {self.detail}"


class NotFound(ClinicError):
    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ValidationError(ClinicError):
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY


class DoctorUnavailable(ClinicError):
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Doctor is not available at the selected time"):
        super().__init__(detail)


class SlotConflict(ClinicError):
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Time slot is already booked"):
        super().__init__(detail)


class InvalidTransition(ClinicError):
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, current, target, entity: str = "appointment"):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move {entity} from {_label(current)} to {_label(target)}"
        )


class InvalidAmount(ClinicError):
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Payment amount must be greater than zero, got {amount}")


class IdentifierExhausted(ClinicError):
    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, prefix: str, attempts: int):
        super().__init__(
            f"Could not generate a unique {prefix} identifier after {attempts} attempts"
        )


class ResourceBusy(ClinicError):
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, scope):
        super().__init__(f"{scope} is being modified by another request, please retry")


def _label(value) -> str:
    return getattr(value, "value", value) if value is not None else "none"
