"""Exception types for the storefront.

Most expected failures (storage I/O, database calls) are reported by returning
None/False and logging. These exceptions cover the cases where a caller has to
react: transport errors forwarded to sync listeners, a corrupt cart mirror, and
checkout preconditions.
"""


class StorefrontError(Exception):
    """Base class for storefront errors."""


class SyncTransportError(StorefrontError):
    """A realtime subscription failed or errored mid-stream.

    Attributes:
        path: Collection or document path of the failing subscription
        cause: Underlying exception reported by the source
    """

    def __init__(self, path: str, cause: BaseException | None = None) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Subscription to '{path}' failed: {cause}")


class CorruptLocalStateError(StorefrontError):
    """Locally stored state (the store file or the cart payload in it) could not be parsed."""


class CheckoutValidationError(StorefrontError):
    """Checkout cannot be composed with the given cart or customer details."""
