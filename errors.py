"""
Errors raised by the storefront core.

Remote failures never show up here: the sync layer logs and swallows them.
Lookup misses are no-ops, and a wrong admin password is just ``False``.
"""


class StoreError(Exception):
    """Base class for storefront errors."""


class PreconditionError(StoreError):
    """An action was rejected before any state was touched.

    The message is meant to be shown to the user as-is.
    """
