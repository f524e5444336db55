"""Domain-level exceptions.

All checkout failures are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly and display user-friendly
messages.  Each resolver decides locally which of these it absorbs and
which it lets reach the caller.
"""


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """A business rule or field-level invariant was violated."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class CheckoutLockedError(DomainException):
    """An edit was attempted while the checkout is submitting or finished."""


class AuthenticationError(DomainException):
    """The identity store refused the supplied credentials."""


class LookupFailure(DomainException):
    """Identity or address enrichment lookup could not be completed."""


class QuotationUnavailable(DomainException):
    """A carrier method has no usable quote for the current destination."""


class TokenizationError(DomainException):
    """Base class for card tokenization failures."""


class TokenizationRejected(TokenizationError):
    """The issuer declined the card. New card details are required."""


class TokenizationTransportError(TokenizationError):
    """The gateway could not process the request. The same card may be retried."""


class OrderSubmissionFailure(DomainException):
    """The order service refused or failed to record the order."""
