# -----------------------------------------------------------------------------
# Fuzzy Matcher
# Purpose: On an exact signature miss, find the cached pattern learned for the
# closest similar problem. Profiles are compared field by field:
#   same operand-count bucket, target bucket within one step, same complexity.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from typing import Optional

from .store import CacheStore
from .types import ProblemProfile

logger = logging.getLogger(__name__)


class FuzzyMatcher:
    def __init__(self, store: CacheStore):
        self.store = store

    def find_similar(self, profile: ProblemProfile) -> Optional[str]:
        """
        Return the signature of the most recently used similar pattern, or
        None when no cached profile satisfies all three comparisons.
        """
        own = profile.signature()
        best = None
        for sig, rec in self.store.patterns().items():
            if sig == own or rec.profile is None:
                continue
            if not profile.is_similar_to(rec.profile.to_profile()):
                continue
            rank = (rec.last_used, rec.timestamp, sig)
            if best is None or rank > best[0]:
                best = (rank, sig)
        if best is None:
            return None
        logger.debug("Fuzzy match for %s -> %s", own, best[1])
        return best[1]
