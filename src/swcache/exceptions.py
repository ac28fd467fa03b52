"""Exception hierarchy for swcache.

All exceptions inherit from :class:`SwcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`swcache.exit_codes`.
The top-level error handler in :func:`swcache.app.main` catches
``SwcacheError`` and exits with the appropriate code.

The strategy layer raises :class:`CacheMiss`, :class:`UpstreamError` and
:class:`NetworkFailure` internally; only
:class:`NoResponseAvailable` (and a bare :class:`NetworkFailure` from the
permanent-cache path) ever reach the caller of an intercepted request.

Subclass hierarchy::

    SwcacheError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- CacheMiss           (exit 4)
    +-- UpstreamError       (exit 5)
    +-- NetworkFailure      (exit 6)
    +-- NoResponseAvailable (exit 7)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from swcache.exit_codes import (
    EXIT_CACHE_MISS,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NETWORK_FAILURE,
    EXIT_NO_RESPONSE,
    EXIT_UPSTREAM_ERROR,
)


class SwcacheError(Exception):
    """Base exception for all swcache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SwcacheError):
    """Raised for invalid CLI arguments (bad header syntax, relative URLs)."""

    exit_code = EXIT_INVALID_USAGE


class CacheMiss(SwcacheError):
    """Raised when a namespace holds no entry for a request identity."""

    exit_code = EXIT_CACHE_MISS


class UpstreamError(SwcacheError):
    """Raised when the fetch resolved but the status indicates failure.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status returned by the origin.
    """

    exit_code = EXIT_UPSTREAM_ERROR

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class NetworkFailure(SwcacheError):
    """Raised when the fetch itself failed (connection refused, timeout, DNS)."""

    exit_code = EXIT_NETWORK_FAILURE


class NoResponseAvailable(SwcacheError):
    """Terminal failure: neither the cache nor the network could answer.

    From the caller's point of view this is equivalent to an ordinary failed
    network request.
    """

    exit_code = EXIT_NO_RESPONSE


class ConfigError(SwcacheError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
