# -----------------------------------------------------------------------------
# Error base
# Purpose: Common root for every error kind the solver ecosystem raises, so
# callers can catch one type at the engine boundary.
# -----------------------------------------------------------------------------

from __future__ import annotations


class SolverError(Exception): pass
