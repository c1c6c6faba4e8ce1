"""Recoverable governance errors surfaced to callers as user-facing messages"""

from typing import Optional

class GovernanceError(Exception):
    """Base class for every error the engine reports to a caller"""
    code = 'governance_error'
    default_message = "The operation could not be completed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

class Forbidden(GovernanceError):
    code = 'forbidden'
    default_message = "You do not have permission to perform this action."

class NotFound(GovernanceError):
    code = 'not_found'
    default_message = "The requested record was not found."

class AlreadyDecided(GovernanceError):
    code = 'already_decided'
    default_message = "This request has already been processed."

class DuplicatePending(GovernanceError):
    code = 'duplicate_pending'
    default_message = "You already have an active request of this kind."

class CooldownActive(GovernanceError):
    code = 'cooldown_active'

    def __init__(self, remaining_hours: int):
        self.remaining_hours = remaining_hours
        super().__init__(
            "You cannot submit a promotion request yet. The probation period has not "
            f"passed. About {remaining_hours} hour(s) remaining."
        )

class InsufficientAuthority(GovernanceError):
    code = 'insufficient_authority'
    default_message = "You cannot assign a rank equal to or higher than your own."

class ImmutableAdmin(GovernanceError):
    code = 'immutable_admin'
    default_message = "An administrator's rank and role cannot be changed."

class DirectorAssignmentRestricted(GovernanceError):
    code = 'director_assignment_restricted'
    default_message = "Only an administrator can appoint the Director."

class DeputyAssignmentRestricted(GovernanceError):
    code = 'deputy_assignment_restricted'
    default_message = "Only the Director or an administrator can appoint a Deputy Director."

class ValidationError(GovernanceError):
    code = 'validation_error'
    default_message = "A required field is missing or invalid."

class DuplicateNickname(ValidationError):
    code = 'duplicate_nickname'
    default_message = "A member with this nickname already exists."

class LockUnavailable(GovernanceError):
    code = 'lock_unavailable'
    default_message = "The portal is busy with another change. Try again shortly."
