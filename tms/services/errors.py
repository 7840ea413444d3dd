"""Domain errors raised by services and translated to HTTP responses by the routes."""


class NotFoundError(Exception):
    """Raised when a referenced document does not exist."""


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness or reference rule."""


class InvalidTransitionError(Exception):
    """Raised when a tax status change skips or leaves the type's workflow."""


class ServiceNotConfiguredError(Exception):
    """Raised when an optional integration (email, Gemini, OpenAI) has no credentials."""


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or cannot receive a message."""


class ExtractionError(Exception):
    """Raised when the vision model cannot be reached or returns no content."""
