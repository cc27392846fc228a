"""
Custom exception classes and error handling.

Two families live here:

- APIException and friends: plain HTTP errors raised directly by routers.
- DomainError and friends: raised by the services layer, which knows
  nothing about HTTP. main.py renders them with their status_code and
  error_code so clients get a consistent error body.

Domain error kinds:
    data-integrity      the stored data contradicts itself (fatal, 500)
    state-precondition  the request is not valid for the current state (4xx)
    storage             the atomic write was rejected (fatal, 500)
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Access denied."""

    def __init__(self, detail: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class ConflictError(APIException):
    """Resource conflict (e.g., duplicate entry)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT"
        )


# ============ Domain errors ============

class DomainError(Exception):
    """Base class for errors raised by the services layer."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "DOMAIN_ERROR"

    def __init__(self, detail: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.context = context or {}

    def to_response(self) -> Dict[str, Any]:
        return {
            "detail": self.detail,
            "error_code": self.error_code,
            "context": self.context,
        }


class DataIntegrityError(DomainError):
    """Stored plan/session data is inconsistent; the whole operation aborts."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "DATA_INTEGRITY_ERROR"


class MissingProgressionError(DataIntegrityError):
    """An exercise being resolved has no progression record."""

    def __init__(self, exercise_id: Any):
        super().__init__(
            f"No exercise progression found for exercise_id: {exercise_id}.",
            context={"exercise_id": str(exercise_id)},
        )
        self.exercise_id = exercise_id


class MissingSessionSetError(DataIntegrityError):
    """An expected plan set has no performed counterpart in the session."""

    def __init__(self, set_index: int, exercise_id: Any, plan_exercise_id: Any):
        super().__init__(
            f"No actual set found for expected set with index {set_index} "
            f"of exercise {exercise_id} (plan exercise ID: {plan_exercise_id}).",
            context={
                "set_index": set_index,
                "exercise_id": str(exercise_id),
                "plan_exercise_id": str(plan_exercise_id),
            },
        )
        self.set_index = set_index
        self.exercise_id = exercise_id
        self.plan_exercise_id = plan_exercise_id


class UnsupportedDeloadStrategyError(DataIntegrityError):
    """The configured deload strategy has no defined computation."""

    def __init__(self, strategy: Any, exercise_id: Any):
        super().__init__(
            f"Unsupported deload strategy: '{strategy}' for exercise {exercise_id}.",
            context={"strategy": str(strategy), "exercise_id": str(exercise_id)},
        )
        self.strategy = strategy
        self.exercise_id = exercise_id


class StatePreconditionError(DomainError):
    """The request cannot be applied to the resource in its current state."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "STATE_PRECONDITION_ERROR"


class SessionStateError(StatePreconditionError):
    error_code = "SESSION_STATE_ERROR"


class OwnershipError(StatePreconditionError):
    """A child id does not belong to the stated parent."""

    error_code = "OWNERSHIP_ERROR"


class PlanActivationError(StatePreconditionError):
    error_code = "PLAN_ACTIVATION_ERROR"


class ResourceNotFoundError(StatePreconditionError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            context={"resource": resource, "id": str(identifier)},
        )


class StorageError(DomainError):
    """The persistence layer rejected an atomic write. Nothing was committed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "STORAGE_ERROR"

    def __init__(self, detail: str = "Failed to persist changes.", cause: Optional[BaseException] = None):
        super().__init__(detail)
        self.cause = cause

    def to_response(self) -> Dict[str, Any]:
        # The underlying cause is for logs only.
        return {"detail": self.detail, "error_code": self.error_code, "context": {}}
