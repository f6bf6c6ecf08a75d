from . import models
from .unlock import compute_unlock, unlock_for, format_duration, format_duration_long

__all__ = ["models", "compute_unlock", "unlock_for", "format_duration", "format_duration_long"]
