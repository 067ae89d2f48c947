#!/usr/bin/env python3
"""
Exceptions raised by the scoring orchestration layer.
"""

from typing import Dict, Optional


class ServiceException(Exception):
    """Base exception for service layer errors."""
    pass


class CapacityExceededException(ServiceException):
    """Raised when the global active-fork cap has been reached."""

    def __init__(self, active: int, limit: int):
        self.active = active
        self.limit = limit
        super().__init__(f"Maximum concurrent forks ({limit}) reached: {active} active")


class ForkNotFoundException(ServiceException):
    """Raised when a fork id is not tracked by the fork manager."""
    pass


class ForkIsolationException(ServiceException):
    """Raised when every isolation mode failed for a fork."""
    pass


class ForkConnectionException(ServiceException, ConnectionError):
    """Raised when a fork's connection handle is unusable."""
    pass


class SubjectNotFoundException(ServiceException):
    """Raised when a resume or job cannot be found by id."""

    def __init__(self, kind: str, subject_id: str):
        self.kind = kind
        self.subject_id = subject_id
        super().__init__(f"{kind.capitalize()} not found: {subject_id}")


class InvalidResultException(ServiceException):
    """Raised when a scorer returns a result that violates its output contract."""
    pass


class StrategyTimeoutException(ServiceException, TimeoutError):
    """Raised when a scoring strategy does not finish within its timeout."""

    def __init__(self, strategy_type: str, timeout_seconds: float):
        self.strategy_type = strategy_type
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{strategy_type} agent timeout after {timeout_seconds}s")


class InvalidArgumentException(ServiceException, ValueError):
    """Raised when a request is malformed."""
    pass


class NoAgentsAvailableException(ServiceException):
    """Raised when no strategy fork could be created for a scoring request."""

    def __init__(self, errors: Optional[Dict[str, str]] = None):
        self.errors = errors or {}
        detail = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        message = "Failed to create any agents"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class HarnessStateException(ServiceException):
    """Raised when an agent harness is run more than once."""
    pass
