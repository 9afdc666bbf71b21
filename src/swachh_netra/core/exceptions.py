class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when a referenced feeder point, trip, record or document does not exist."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class CollaboratorError(DomainError):
    """Raised when an external collaborator (store, GPS, camera) fails."""


class StoreUnavailableError(CollaboratorError):
    """The document store could not be reached or rejected the call."""


class StoreTimeoutError(StoreUnavailableError):
    """The document store did not answer within the configured timeout."""


class LocationUnavailableError(CollaboratorError):
    """Current location could not be obtained (permission denied, no fix)."""


class EvidenceCaptureError(CollaboratorError):
    """The camera could not produce a photo reference."""


class SanitizationError(DomainError):
    """An unset optional value reached the persistence boundary.

    This is a programming error: every write path must normalize optional
    fields before calling the store.
    """
