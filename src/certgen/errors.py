"""certgen client errors."""
from typing import Optional


class Error(Exception):
    """Generic certgen error."""


class ConfigurationError(Error):
    """Configuration sanity error."""


class PathError(Error):
    """A configured path points to something unusable, e.g. a directory."""


class StorageError(Error):
    """Persisted record storage error."""


class OutputError(Error):
    """The certificate and key could not be delivered."""


class PhaseError(Error):
    """An issuance step was rejected or did not complete.

    :ivar str phase: workflow step that failed (``register``, ``order``,
        ``authorization``, ``challenge``, ``finalize``)
    :ivar str domain: offending domain, if the failure concerns one
    :ivar str typ: error type reported by the CA, if any
    :ivar str detail: error detail reported by the CA, if any

    """
    phase = 'issuance'

    def __init__(self, message: str, domain: Optional[str] = None,
                 typ: Optional[str] = None, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.domain = domain
        self.typ = typ
        self.detail = detail

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.domain:
            parts.append(f"Domain: {self.domain}")
        if self.typ:
            parts.append(f"Type: {self.typ}")
        if self.detail:
            parts.append(f"Detail: {self.detail}")
        return "\n".join(parts)


class RegistrationError(PhaseError):
    """Account registration failed for a reason other than an existing account."""
    phase = 'register'


class OrderCreationError(PhaseError):
    """The CA rejected the order."""
    phase = 'order'


class AuthorizationError(PhaseError):
    """Authorization error."""
    phase = 'authorization'


class ChallengeValidationError(AuthorizationError):
    """A challenge did not reach the ``valid`` status."""
    phase = 'challenge'


class FinalizationError(PhaseError):
    """The order did not become ``valid`` after submitting the CSR."""
    phase = 'finalize'
