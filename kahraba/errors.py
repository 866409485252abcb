"""Error taxonomy for the kahraba services.

Every failure is raised to the immediate caller (CLI, API handler or test);
nothing in the services swallows these.
"""


class KahrabaError(Exception):
    """Base error for kahraba service operations."""


class NotFoundError(KahrabaError):
    """A referenced record does not exist."""


class JobNotFoundError(NotFoundError):
    """Job id does not resolve to a record."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class InvalidTransitionError(KahrabaError):
    """Requested status is not reachable from the current status.

    Recoverable: re-fetch the job and retry with a valid target.
    """


class UnauthorizedError(KahrabaError):
    """Actor is not permitted to perform this operation."""


class SettlementError(KahrabaError):
    """Settlement failed during a completion; the transition was not applied."""


class ConcurrentModificationError(KahrabaError):
    """The job changed underneath the caller; re-fetch and retry."""


class LedgerError(KahrabaError):
    """Invalid ledger operation."""


class DispatchError(KahrabaError):
    """Base error for broadcast offer handling."""


class NoActiveOfferError(DispatchError):
    """The worker has no offer to accept or decline."""


class OfferExpiredError(DispatchError):
    """The offer countdown reached zero before it was accepted."""


class CreditLimitExceededError(DispatchError):
    """Worker owes more than the credit limit and cannot take new jobs."""
