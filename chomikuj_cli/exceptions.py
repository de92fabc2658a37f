"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class ChomikujCliError(Exception):
    """Base exception for all application-specific errors."""


class AuthenticationError(ChomikujCliError):
    """Raised when the ChomikBox service returns no token for the given credentials."""


class ConfigurationError(ChomikujCliError):
    """Raised for issues related to configuration loading or validation."""


class TransportError(ChomikujCliError):
    """Raised when an HTTP round-trip cannot be completed at all."""


class LinkUnavailableError(ChomikujCliError):
    """
    Describes a file for which the service issued no download URL
    (embargoed, expired or empty). Logged and dropped, never fatal.
    """


class TransferNotFoundError(ChomikujCliError):
    """Describes a signed URL answered with HTTP 404. Per-file, never fatal."""


class FileSystemFatalError(ChomikujCliError):
    """Raised when a destination file cannot be created. Aborts the whole run."""


class OperationCancelledError(ChomikujCliError):
    """Raised when a cancellation token is triggered mid-run."""
