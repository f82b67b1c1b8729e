# -----------------------------------------------------------------------------
# Equation Solver: exhaustive, deterministic target-seeking search
# Responsibilities:
#   • Enumerate every template of arity 1..min(3, n) over every ordered
#     selection of the operands (order matters for - / ^ %)
#   • Score each candidate by accuracy against the target
#   • Keep the best, preferring simpler equations on ties so the same inputs
#     always produce the same equation text
#   • Stop after an arity level once an exact match can no longer be beaten
# -----------------------------------------------------------------------------

from __future__ import annotations
import itertools
import logging
import math
from typing import Iterator, List, Optional, Sequence, Tuple

from .errors import SolverError
from .evaluator import DomainError, Template, evaluate, templates_for
from .tracer import Tracer
from .types import ExpressionCandidate, SolutionResult

logger = logging.getLogger(__name__)

MAX_ARITY = 3
EXACT_REL_EPS = 1e-9


class InsufficientInputs(SolverError): pass


def accuracy_pct(value: float, target: float) -> float:
    """
    Percentage closeness of `value` to `target`:
        max(0, 100 * (1 - |value - target| / max(|target|, 1)))
    With target == 0 this reduces to 100 * (1 - |value|), clamped to [0, 100].
    Values within EXACT_REL_EPS (relative) count as exactly 100.
    """
    if not math.isfinite(value):
        return 0.0
    scale = max(abs(target), 1.0)
    diff = abs(value - target)
    if diff <= EXACT_REL_EPS * scale:
        return 100.0
    return min(100.0, max(0.0, 100.0 * (1.0 - diff / scale)))


def _rank(acc: float, template: Template, values: Tuple[float, ...], order: int):
    # Lower is better: accuracy desc, operators asc, operand magnitude asc,
    # then enumeration order.
    return (-acc, template.operators, sum(abs(v) for v in values), order)


class EquationSolver:
    def __init__(self, max_arity: int = MAX_ARITY):
        self.max_arity = max(1, min(max_arity, MAX_ARITY))

    def candidates(self, operands: Sequence[float], max_arity: Optional[int] = None) -> Iterator[Tuple[Template, Tuple[float, ...]]]:
        """Yield (template, ordered operand values) in enumeration order."""
        limit = min(max_arity or self.max_arity, self.max_arity, len(operands))
        for arity in range(1, limit + 1):
            for values in itertools.permutations(operands, arity):
                for t in templates_for(arity):
                    yield t, values

    def expressions(self, operands: Sequence[float], max_arity: Optional[int] = None) -> Iterator[ExpressionCandidate]:
        """Every in-domain candidate; domain errors are skipped."""
        for t, values in self.candidates(operands, max_arity):
            try:
                yield ExpressionCandidate(t.id, values, evaluate(t, values))
            except DomainError:
                continue

    def solve(
        self,
        target: float,
        operands: Sequence[float],
        trace: Optional[Tracer] = None,
        max_arity: Optional[int] = None,
    ) -> SolutionResult:
        """
        Find the expression over `operands` closest to `target`.

        Raises InsufficientInputs when no (finite) operand is supplied.
        """
        nums: List[float] = [float(v) for v in operands if math.isfinite(float(v))]
        if not nums:
            raise InsufficientInputs("at least one finite operand is required")

        limit = min(max_arity or self.max_arity, self.max_arity, len(nums))
        best = None          # (rank, template, values, value)
        tried = 0
        skipped = 0
        order = 0
        stopped_at = limit

        for arity in range(1, limit + 1):
            for values in itertools.permutations(nums, arity):
                for t in templates_for(arity):
                    order += 1
                    tried += 1
                    try:
                        v = evaluate(t, values)
                    except DomainError:
                        skipped += 1
                        continue
                    rk = _rank(accuracy_pct(v, target), t, values, order)
                    if best is None or rk < best[0]:
                        best = (rk, t, values, v)

            # Exact and strictly simpler than anything the next level offers.
            if best is not None and best[0][0] == -100.0 and arity < limit:
                next_min = min(t.operators for t in templates_for(arity + 1))
                if best[1].operators < next_min:
                    stopped_at = arity
                    break

        # The identity template never leaves its domain, so best is always set.
        rk, t, values, v = best
        acc = -rk[0]
        result = SolutionResult(
            equation_text=t.render(values),
            value=v,
            accuracy_pct=acc,
            exact=acc == 100.0,
            template_id=t.id,
            operators=t.operators,
            candidates_tried=tried,
        )

        logger.debug("solve target=%s operands=%s -> %s (%.4f%%, %d tried, %d out of domain)",
                     target, nums, result.equation_text, result.accuracy_pct, tried, skipped)
        if trace is not None:
            trace.add("search", {
                "target": target,
                "operands": nums,
                "tried": tried,
                "domain_skipped": skipped,
                "stopped_at_arity": stopped_at,
                "equation": result.equation_text,
                "value": result.value,
                "accuracy_pct": result.accuracy_pct,
                "exact": result.exact,
            })
        return result
