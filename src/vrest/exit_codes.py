"""Numeric process exit codes used by the ``vrest`` command-line front end.

Each constant maps to a failure category and is referenced by the
corresponding :class:`~vrest.exceptions.VrestError` subclass, so shell
scripts can branch on the exit status without parsing stderr.

Example::

    $ vrest request GET https://api.example.com/users/1
    $ echo $?
    5   # EXIT_STATUS_ERROR -- the server answered with a non-success status
"""

EXIT_SUCCESS = 0
"""The request completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_REQUEST = 2
"""The request could not be built (bad destination, unsupported content type)."""

EXIT_AUTH_FAILURE = 3
"""A bearer token could not be acquired."""

EXIT_CODEC_ERROR = 4
"""A request or response body could not be (un)marshaled."""

EXIT_STATUS_ERROR = 5
"""The server answered with a non-success status code."""

EXIT_CONNECTION_ERROR = 6
"""A transport-level error occurred (timeout, DNS failure, connection refused)."""
