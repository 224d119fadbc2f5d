# app/core/exceptions.py

from fastapi import HTTPException


class OutpassError(Exception):
    """
    Base class for every business-rule failure raised by the outpass core.
    These are user-correctable (4xx); infrastructure errors are never wrapped.
    """
    status_code = 400
    default_message = "Outpass operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


# ============================================================
# LOOKUP / ACTOR FAILURES
# ============================================================
class NotFound(OutpassError):
    status_code = 404
    default_message = "Outpass not found"


class InvalidActor(OutpassError):
    status_code = 403
    default_message = "Actor is not allowed to perform this action"


class Forbidden(OutpassError):
    status_code = 403
    default_message = "You can only act on your own outpasses"


class InvalidSubject(OutpassError):
    default_message = "Invalid student"


# ============================================================
# TRANSITION FAILURES
# ============================================================
class InvalidState(OutpassError):
    status_code = 409
    default_message = "Transition not allowed from the current status"


class AlreadyProcessed(OutpassError):
    status_code = 409
    default_message = "Outpass has already been processed"


# ============================================================
# INPUT FAILURES
# ============================================================
class InvalidArgument(OutpassError):
    default_message = "Invalid argument"


class InvalidInterval(InvalidArgument):
    default_message = "Invalid outpass interval"


class ConflictingInterval(OutpassError):
    status_code = 409
    default_message = "You have an overlapping outpass request"


class RequestsSuspended(OutpassError):
    status_code = 403
    default_message = "Outpass requests are not being accepted at the moment"


# ============================================================
# VERIFICATION FAILURES
# ============================================================
class VerificationError(OutpassError):
    default_message = "Invalid outpass token"


class InvalidSignature(VerificationError):
    default_message = "Invalid outpass token"


class Expired(VerificationError):
    default_message = "Outpass token has expired"


class StaleReference(VerificationError):
    status_code = 409
    default_message = "Outpass is not approved or already used"
