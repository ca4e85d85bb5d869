"""
Recourse Custom Exceptions

All module-specific exceptions inherit from RecourseError.

Most recoverable conditions are reported as ``Result`` values rather than
raised; the classes below are what ``Result.unwrap()`` raises for each
``ErrorKind``, and what configuration checks raise directly.
"""


class RecourseError(Exception):
    """Base exception for all Recourse errors."""

    pass


# State Exceptions
class StateError(RecourseError):
    """Base exception for snapshot and stack errors."""

    pass


class EmptyStackError(StateError):
    """Raised when popping or peeking an empty snapshot stack."""

    pass


class SnapshotNotFoundError(StateError):
    """Raised when no persisted stack exists under a key."""

    pass


class PersistenceError(StateError):
    """Raised when a stack cannot be serialized or written."""

    pass


class StorageError(RecourseError):
    """Raised when a key-value store backend fails."""

    pass


# Budget Exceptions
class BudgetError(RecourseError):
    """Base exception for budget errors."""

    pass


class InsufficientBudgetError(BudgetError):
    """Raised when no budget remains for a level allocation."""

    pass


class InsufficientPriorityReserveError(BudgetError):
    """Raised when the priority reserve cannot cover a request."""

    pass


class BudgetExhaustedError(BudgetError):
    """Raised when a run stops because the backtrack budget is spent."""

    pass


# Exploration Exceptions
class ExplorationError(RecourseError):
    """Base exception for path exploration errors."""

    pass


class NoAlternativesError(ExplorationError):
    """Raised when no untried alternative path can be generated."""

    pass


class NoSolutionError(ExplorationError):
    """Raised when beam search runs out of states to expand."""

    pass


class MaxDepthExceededError(ExplorationError):
    """Raised when beam search reaches its depth limit."""

    pass


# Controller Exceptions
class ControllerError(RecourseError):
    """Base exception for iterative controller terminal failures."""

    pass


class MaxBacktracksExceededError(ControllerError):
    """Raised when a run hits its backtrack ceiling without a result."""

    pass


class MaxIterationsExceededError(ControllerError):
    """Raised when a run hits its iteration ceiling without a result."""

    pass


class ClarificationRequiredError(ControllerError):
    """Raised when failures point at ambiguous requirements."""

    pass


# Configuration Exceptions
class ConfigurationError(RecourseError):
    """Raised for invalid configuration. Never retried."""

    pass


class ValidatorRequiredError(ConfigurationError):
    """Raised when a controller run is started without a validator."""

    pass
