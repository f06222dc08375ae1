"""Error taxonomy for the dispatch engine.

Every user-facing failure carries a stable ``kind`` and a human message. The
API layer renders these as ``{"error": kind, "message": ...}`` with the
matching HTTP status; internal details are never included.
"""


class DispatchError(Exception):
    kind = "UpstreamFailure"
    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFound(DispatchError):
    kind = "NotFound"
    status_code = 404


class InvalidInput(DispatchError):
    kind = "InvalidInput"
    status_code = 400


class InvalidTransition(DispatchError):
    kind = "InvalidTransition"
    status_code = 409


class InvalidState(DispatchError):
    kind = "InvalidState"
    status_code = 409


class TerminalState(DispatchError):
    kind = "TerminalState"
    status_code = 409


class InsufficientStock(DispatchError):
    kind = "InsufficientStock"
    status_code = 409

    def __init__(self, medicine_id: str, name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {name}",
            medicine_id=medicine_id,
            requested=requested,
            available=available,
        )
        self.medicine_id = medicine_id
        self.name = name


class Forbidden(DispatchError):
    kind = "Forbidden"
    status_code = 403


class Conflict(DispatchError):
    kind = "Conflict"
    status_code = 409


class NoPartnerAvailable(DispatchError):
    kind = "NoPartnerAvailable"
    status_code = 404


class UpstreamFailure(DispatchError):
    kind = "UpstreamFailure"
    status_code = 503
