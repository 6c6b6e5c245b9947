"""Labels for the role a node plays in the cluster."""

from __future__ import annotations

PRIMARY_ROLE = "primary"
STANDBY_ROLE = "standby"
WITNESS_ROLE = "witness"


def role_label(role: str, active: bool, zombie_locked: bool) -> str:
    """The role reported by the health check."""
    if zombie_locked:
        return "zombie"
    if role == PRIMARY_ROLE:
        return "primary" if active else "zombie"
    if role == STANDBY_ROLE:
        return "replica"
    if role == WITNESS_ROLE:
        return "witness"
    return "unknown"


def api_role_label(role: str) -> str:
    """The role reported by the admin API."""
    if role == PRIMARY_ROLE:
        return "primary"
    if role == STANDBY_ROLE:
        return "replica"
    return "unknown"