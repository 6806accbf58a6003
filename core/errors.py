"""
    Exception types raised by the audit engine.

    Per-path filesystem problems are never raised: they become ERROR results.
    Only problems with the rules themselves (or the files they come from)
    surface as exceptions.
"""


class AuditError(Exception):
    """Base class for every error raised by the auditor."""


class InvalidRuleError(AuditError):
    """A policy rule has malformed or contradictory expectations."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"invalid rule for {path!r}: {reason}")
        self.path = path
        self.reason = reason


class ModeParseError(AuditError, ValueError):
    """A permission string could not be parsed."""


class ConfigError(AuditError):
    """A rule file could not be read or parsed."""
