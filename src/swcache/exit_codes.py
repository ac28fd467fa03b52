"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~swcache.exceptions.SwcacheError` subclass.
Shell wrappers can inspect the exit code of ``swcache fetch`` to tell an
offline miss apart from an upstream failure without parsing stderr.

Example::

    $ swcache fetch https://example.com/assets/song1/index.json
    $ echo $?
    7   # EXIT_NO_RESPONSE -- neither cache nor network could answer
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_CACHE_MISS = 4
"""No entry exists in the namespace for the request identity."""

EXIT_UPSTREAM_ERROR = 5
"""The origin answered with a non-success HTTP status."""

EXIT_NETWORK_FAILURE = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_NO_RESPONSE = 7
"""Neither the cache nor the network could satisfy the request."""
