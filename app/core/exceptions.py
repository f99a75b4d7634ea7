"""
Error taxonomy for the team access engine.

Every failure an engine operation can report is one of these classes.
Routes never catch them; the handler registered in ``app.main`` renders
them as ``{"error": kind, "detail": message}`` with the class status code.
"""
from typing import Any, Dict, Optional


class TeamAccessError(Exception):
    """Base class for caller-facing engine errors."""
    kind: str = "Error"
    status_code: int = 400

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "detail": self.message}


class ValidationError(TeamAccessError):
    """A required field is missing or an operation is invalid for the entity's state."""
    kind = "Validation"
    status_code = 400


class NotFoundError(TeamAccessError):
    """A referenced module, role or member does not exist."""
    kind = "NotFound"
    status_code = 404


class NotAuthorizedError(TeamAccessError):
    """The caller has no resolvable role and the team is not bootstrapping."""
    kind = "NotAuthorized"
    status_code = 403


class PrivilegeEscalationError(TeamAccessError):
    """The caller tried to grant a role more powerful than their own."""
    kind = "PrivilegeEscalation"
    status_code = 403


class SystemRoleImmutableError(TeamAccessError):
    kind = "SystemRoleImmutable"
    status_code = 409


class RoleInUseError(TeamAccessError):
    """Deletion blocked by members still holding the role."""
    kind = "RoleInUse"
    status_code = 409

    def __init__(self, count: int, message: Optional[str] = None):
        self.count = count
        super().__init__(
            message or f"Cannot delete role. {count} member(s) are assigned to this role."
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["count"] = self.count
        return data


class DuplicateEmailError(TeamAccessError):
    kind = "DuplicateEmail"
    status_code = 409


class SelfRemovalError(TeamAccessError):
    kind = "SelfRemoval"
    status_code = 400


class PersistenceError(TeamAccessError):
    """Opaque store failure; the original exception is kept on ``original``."""
    kind = "PersistenceFailure"
    status_code = 500

    def __init__(self, original: BaseException, message: str = "The team store rejected the operation"):
        self.original = original
        super().__init__(message)
