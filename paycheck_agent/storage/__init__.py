"""
Optional Supabase persistence.
"""

from .intake_store import IntakeStore, INTAKE_TABLE, RESULTS_TABLE

__all__ = ["IntakeStore", "INTAKE_TABLE", "RESULTS_TABLE"]
