"""
Erreurs métier / Domain errors.
Chaque erreur porte un `kind` stable (lisible par machine) et un message lisible.
Each error carries a stable machine-readable `kind` and a human-readable message.
Converties en enveloppe JSON par les handlers de main.py / Turned into the JSON
envelope by the handlers in main.py.
"""


class AddedVehicleError(Exception):
    """Base des erreurs récupérables / Base for recoverable, caller-facing errors."""

    kind = "ERROR"
    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        error = {"kind": self.kind}
        if self.field:
            error["field"] = self.field
        return {"success": False, "message": self.message, "error": error}


class NotFoundError(AddedVehicleError):
    kind = "NOT_FOUND"
    status_code = 404


class PermissionDeniedError(AddedVehicleError):
    kind = "PERMISSION_DENIED"
    status_code = 403


class ConflictError(AddedVehicleError):
    kind = "CONFLICT"
    status_code = 409


class InvalidTransitionError(AddedVehicleError):
    kind = "INVALID_TRANSITION"
    status_code = 409


class ValidationFailedError(AddedVehicleError):
    kind = "VALIDATION_ERROR"
    status_code = 422
