"""
Background workers.

Only the optional expiry reaper lives here; the paste lifecycle itself never
needs a background task.
"""

from .expiry_reaper import run_reaper_cycle, start_expiry_reaper

__all__ = ["run_reaper_cycle", "start_expiry_reaper"]
