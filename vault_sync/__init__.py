"""Optimistic state reconciliation for a time-locked deposit vault."""

from .application import VaultSession
from .application.services import ConfirmedStatePoller, CountdownTicker, ReconciledView, SpeculativeStore
from .domain import compute_unlock

__version__ = "0.1.0"

__all__ = [
    "VaultSession",
    "SpeculativeStore",
    "ConfirmedStatePoller",
    "ReconciledView",
    "CountdownTicker",
    "compute_unlock",
]
