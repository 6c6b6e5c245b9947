"""Helpers for a replicated PostgreSQL cluster: backup settings, scheduling, restores, checks and admin SQL."""

__version__ = "0.1.0"