# -----------------------------------------------------------------------------
# Diversity & Target-Aware Selector
# Purpose: Choose which cached values fill unresolved placeholders.
#   1) Deduplicate the pool (float-epsilon aware)
#   2) If the target is known, keep values that fit its magnitude
#   3) Spread the picks across the value range (median / min+max / min, max
#      and evenly spaced interior ranks) so placeholders never all receive
#      the same cached value
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from typing import Iterable, List, Optional

from .tracer import Tracer

logger = logging.getLogger(__name__)

DEDUP_REL_EPS = 1e-9

# Target magnitude thresholds
SMALL_TARGET = 100.0
LARGE_TARGET = 1000.0
# Large targets favour multiplicative compositions: small multipliers + bases
MULTIPLIER_RANGE = (2.0, 20.0)
BASE_CEILING = 1.5


def _same(a: float, b: float) -> bool:
    return abs(a - b) <= DEDUP_REL_EPS * max(abs(a), abs(b), 1.0)


def dedupe(pool: Iterable[float]) -> List[float]:
    """Sorted ascending, values equal within epsilon collapsed to one."""
    out: List[float] = []
    for v in sorted(float(x) for x in pool):
        if not out or not _same(out[-1], v):
            out.append(v)
    return out


def filter_by_target(values: List[float], target: float) -> List[float]:
    """Keep values whose magnitude suits the target (input must be sorted)."""
    if target < SMALL_TARGET:
        return [v for v in values if v < target * 2.0]
    if target <= LARGE_TARGET:
        return [v for v in values if 2.0 <= v <= target * 2.0]
    lo, hi = MULTIPLIER_RANGE
    multipliers = [v for v in values if lo <= v <= hi]
    bases = [v for v in values if hi < v <= target * BASE_CEILING]
    return sorted(multipliers + bases)


def distribute(values: List[float], count: int) -> List[float]:
    """
    Pick `count` values spread across a sorted, distinct list.
      1 pick  → the median
      2 picks → min and max
      n picks → min, max and evenly spaced interior ranks
    Requires len(values) >= count.
    """
    n = len(values)
    if count <= 0:
        return []
    if count >= n:
        return list(values)
    if count == 1:
        return [values[(n - 1) // 2]]
    if count == 2:
        return [values[0], values[-1]]
    picked = [0]
    step = (n - 1) / (count - 1)
    for i in range(1, count - 1):
        idx = int(round(i * step))
        # Ranks must stay strictly increasing and leave room for the max.
        idx = max(idx, picked[-1] + 1)
        idx = min(idx, n - 1 - (count - 1 - i))
        picked.append(idx)
    picked.append(n - 1)
    return [values[i] for i in picked]


class Selector:
    def select(self, pool: Iterable[float], count: int, target: Optional[float] = None,
               trace: Optional[Tracer] = None) -> List[float]:
        """
        Return `count` values for unresolved placeholders.

        Shortfall handling: when the target filter leaves too few distinct
        values, the nearest excluded values are added back (relaxing the
        filter); values repeat only when the whole pool is too small.
        """
        if count <= 0:
            return []
        distinct = dedupe(pool)
        if not distinct:
            logger.warning("No cached values available to fill %d placeholder(s)", count)
            return []

        chosen_from = distinct
        relaxed = False
        if target is not None:
            kept = filter_by_target(distinct, target)
            if len(kept) < count:
                kept = self._relax(distinct, kept, count, target)
                relaxed = True
            chosen_from = kept

        if len(chosen_from) >= count:
            picks = distribute(chosen_from, count)
        else:
            # Last resort: cycle through what we have.
            picks = [chosen_from[i % len(chosen_from)] for i in range(count)]
            logger.warning("Only %d distinct cached value(s) for %d placeholder(s); repeating",
                           len(chosen_from), count)

        if trace is not None:
            trace.add("resolve", {"pool": distinct, "count": count, "target": target,
                                  "candidates": chosen_from, "relaxed": relaxed, "picked": picks})
        return picks

    @staticmethod
    def _relax(distinct: List[float], kept: List[float], count: int, target: float) -> List[float]:
        # Add excluded values closest to the target window until we have enough.
        excluded = [v for v in distinct if not any(_same(v, k) for k in kept)]
        excluded.sort(key=lambda v: (abs(v - target), v))
        need = count - len(kept)
        return sorted(kept + excluded[:need])
