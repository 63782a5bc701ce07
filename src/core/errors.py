"""Errors raised by the core pipeline to its callers."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """A required start or backfill parameter is missing or invalid."""


class TransportNotReadyError(RuntimeError):
    """The chat transport is not connected or not authorized yet."""
