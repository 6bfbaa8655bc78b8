"""
Exception hierarchy for the CCIS assessment engine.
"""


class CCISError(Exception):
    """Base exception for all CCIS errors."""
    pass


class StateViolationError(CCISError):
    """Raised when an operation is not allowed in the current status."""
    pass


class InvalidValueError(CCISError, ValueError):
    """Raised when a value falls outside its declared domain."""
    pass


class SessionNotFoundError(CCISError):
    """Raised when an assessment session is not registered."""
    pass


class InteractionNotFoundError(CCISError):
    """Raised when a task interaction is not registered."""
    pass
