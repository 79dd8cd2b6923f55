"""
Exceptions raised by the claims pipeline and claim service.

Only input validation and unknown identifiers surface to callers; extraction
and classification uncertainty is represented in the data instead.
"""


class ClaimError(Exception):
    """Base class for claim errors."""


class ClaimValidationError(ClaimError, ValueError):
    """Caller supplied input that cannot be processed (e.g. empty notification)."""


class NotFoundError(ClaimError, LookupError):
    """A referenced claim or action does not exist."""


class ClaimNotFoundError(NotFoundError):
    def __init__(self, claim_id: str):
        super().__init__(f"Claim not found: {claim_id}")
        self.claim_id = claim_id


class ActionNotFoundError(NotFoundError):
    def __init__(self, claim_id: str, action_id: str):
        super().__init__(f"Action not found: {action_id} (claim {claim_id})")
        self.claim_id = claim_id
        self.action_id = action_id
