"""
utils/errors.py
---------------
Exception hierarchy for BotTally.

Two families matter to the orchestrator:
    - ExpressionError (validation / evaluation): recovered locally,
      the message reaches a terminal outcome and is marked processed.
    - StoreError / TransportError: transient, logged, and the message is
      left unmarked so a redelivered copy can retry.
ConfigError is fatal and only raised during startup.
"""


class BotTallyError(Exception):
    """Base class for all application errors."""


class ConfigError(BotTallyError):
    """Unrecoverable configuration problem. The process must not start."""


class ExpressionError(BotTallyError):
    """User input could not be turned into a number."""


class ValidationError(ExpressionError):
    """Raw text is not an acceptable arithmetic expression."""


class EvaluationError(ExpressionError):
    """A validated expression failed to evaluate (parse error, x/0, overflow)."""


class StoreError(BotTallyError):
    """Persistence layer unavailable or timed out."""


class TransportError(BotTallyError):
    """The chat transport failed to deliver a reply."""
