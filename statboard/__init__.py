"""Statboard: dashboard widget configuration and reconciliation engine."""

__version__ = "0.3.0"
