"""Service-layer errors mapped to HTTP responses by the API layer."""


class NotFoundError(LookupError):
    """The requested holding or alert does not exist for this user."""


class HoldingConflictError(Exception):
    """The user already holds this coin; the existing holding must be updated instead."""
