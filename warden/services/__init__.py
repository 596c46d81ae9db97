"""Background services owned by the application lifecycle."""
from .sweeper import SweepScheduler

__all__ = ("SweepScheduler",)
