# -----------------------------------------------------------------------------
# Pattern Learning Coordinator
# Purpose: Learn which control-flow shape best solves a class of problems.
# One evaluation round:
#   GENERATED → a fixed menu of strategy variants for the problem
#   RUNNING   → all variants race on a bounded thread pool, each against the
#               same read-only problem view, each with its own timeout
#   SCORED    → score = correctness*100 - time_ms*0.1 - iterations*0.5
#   CACHED    → the winner is written as a PatternRecord under the problem
#               signature (single thread; the store is single-writer)
# Later requests with a matching (or fuzzy-matched) signature re-verify the
# cached winner with a probe and reuse it instead of running a round.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import math
import os
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import SolverConfig
from .errors import SolverError
from .fuzzy import FuzzyMatcher
from .models import PatternRecord, ProfileModel
from .solver import EquationSolver, accuracy_pct
from .store import CacheStore
from .types import CacheKey, PatternType, ProblemProfile, ProblemSpec

logger = logging.getLogger(__name__)

HIT_TOLERANCE = 1e-3


class TimeoutExceeded(SolverError): pass
class UnresolvedOperands(SolverError): pass


class RoundState(str, Enum):
    GENERATED = "generated"
    RUNNING = "running"
    SCORED = "scored"
    CACHED = "cached"


@dataclass(frozen=True)
class PatternVariant:
    name: str
    pattern_type: PatternType
    description: str
    max_iterations: int
    uses_cache: bool = False


@dataclass(frozen=True)
class ProblemView:
    # Read-only input shared by every variant in a round.
    target: float
    values: Tuple[float, ...]
    key: str
    known: Mapping[str, float]  # exact cached solutions: key text -> value


@dataclass(frozen=True)
class VariantOutcome:
    correctness_pct: float
    iterations: int
    found_value: Optional[float] = None


def score(correctness_pct: float, execution_time_ms: float, iterations: int) -> float:
    return correctness_pct * 100.0 - execution_time_ms * 0.1 - iterations * 0.5


@dataclass
class VariantResult:
    variant: PatternVariant
    correctness_pct: float
    execution_time_ms: float
    iterations: int
    found_value: Optional[float] = None
    error: Optional[SolverError] = None

    @property
    def score(self) -> float:
        return score(self.correctness_pct, self.execution_time_ms, self.iterations)

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, TimeoutExceeded)


def select_winner(results: Sequence[VariantResult]) -> VariantResult:
    """Highest score wins; ties go to the lower execution time, then menu order."""
    if not results:
        raise SolverError("No variant results to score")
    best = results[0]
    for r in results[1:]:
        if (r.score, -r.execution_time_ms) > (best.score, -best.execution_time_ms):
            best = r
    return best


@dataclass
class RoundReport:
    signature: str
    record: PatternRecord
    states: List[RoundState] = field(default_factory=list)
    results: List[VariantResult] = field(default_factory=list)
    cache_hit: bool = False
    cached: bool = False
    matched_signature: Optional[str] = None
    probe: Optional[VariantResult] = None


# ---- Strategies -------------------------------------------------------------
# Each strategy is a pure function of (variant, view). Correctness is the
# accuracy (0..100) of the best value it reached.

def _hit(v: float, target: float) -> bool:
    return abs(v - target) < HIT_TOLERANCE


class _Best:
    # Tracks the closest value seen so far.
    def __init__(self, target: float):
        self.target = target
        self.value: Optional[float] = None
        self.acc = 0.0

    def see(self, v: float) -> bool:
        if not math.isfinite(v):
            return False
        acc = 100.0 if _hit(v, self.target) else accuracy_pct(v, self.target)
        if self.value is None or acc > self.acc:
            self.value, self.acc = v, acc
        return acc == 100.0

    def outcome(self, iterations: int) -> VariantOutcome:
        return VariantOutcome(self.acc, iterations, self.value)


def count_loop(variant: PatternVariant, view: ProblemView) -> VariantOutcome:
    # Fixed count: multiples of the first operand.
    best = _Best(view.target)
    n = min(variant.max_iterations, 100)
    for i in range(n):
        v = view.values[0] * (i + 1) if view.values else float(i)
        if best.see(v):
            return best.outcome(i + 1)
    return best.outcome(n)


def range_loop(variant: PatternVariant, view: ProblemView) -> VariantOutcome:
    # Bounded range of multipliers applied to every operand.
    best = _Best(view.target)
    n = min(variant.max_iterations, 500)
    for i in range(n):
        for x in view.values:
            if best.see(x * (i + 1)):
                return best.outcome(i + 1)
    return best.outcome(n)


def while_loop(variant: PatternVariant, view: ProblemView) -> VariantOutcome:
    # Condition-driven: walk operand pairs until exact, good enough, or budget spent.
    best = _Best(view.target)
    pairs = [(a, b) for a in view.values for b in view.values]
    iterations = 0
    while iterations < min(variant.max_iterations, len(pairs)) and best.acc <= 95.0:
        a, b = pairs[iterations]
        iterations += 1
        if best.see(a + b) or best.see(a * b):
            break
    return best.outcome(iterations)


def conditional_chain(variant: PatternVariant, view: ProblemView) -> VariantOutcome:
    # Branch on target size: add small, multiply medium, (a + b) * c large.
    best = _Best(view.target)
    iterations = 0
    xs = view.values
    if view.target < 1000:
        combos = ((a, b, None) for a in xs for b in xs)
    else:
        combos = ((a, b, c) for a in xs for b in xs for c in xs)
    for a, b, c in combos:
        if iterations >= variant.max_iterations:
            break
        iterations += 1
        if c is not None:
            v = (a + b) * c
        elif view.target < 100:
            v = a + b
        else:
            v = a * b
        if best.see(v):
            break
    return best.outcome(iterations)


def nested(variant: PatternVariant, view: ProblemView) -> VariantOutcome:
    # Outer loop over operands, inner loop over operands, branch over operators.
    best = _Best(view.target)
    iterations = 0
    for a in view.values:
        for b in view.values:
            if iterations >= variant.max_iterations:
                return best.outcome(iterations)
            iterations += 1
            for v in (a + b, a * b, a - b, b - a, a / b if b != 0 else None):
                if v is not None and best.see(v):
                    return best.outcome(iterations)
    return best.outcome(iterations)


def cached_lookup_first(variant: PatternVariant, view: ProblemView) -> VariantOutcome:
    # Cache hit is instant; otherwise fall back to the condition-driven loop.
    if variant.uses_cache and view.key in view.known:
        v = view.known[view.key]
        return VariantOutcome(100.0 if _hit(v, view.target) else accuracy_pct(v, view.target), 0, v)
    return while_loop(variant, view)


def adaptive_deep_search(variant: PatternVariant, view: ProblemView) -> VariantOutcome:
    # Progressive deepening through the Equation Solver, arity 1 → 3.
    if variant.uses_cache and view.key in view.known:
        return cached_lookup_first(variant, view)
    if not view.values:
        return VariantOutcome(0.0, 0, None)
    solver = EquationSolver()
    iterations = 0
    res = None
    for depth in range(1, min(3, len(view.values)) + 1):
        res = solver.solve(view.target, view.values, max_arity=depth)
        iterations += res.candidates_tried
        if res.exact or iterations >= variant.max_iterations:
            break
    return VariantOutcome(res.accuracy_pct, iterations, res.value)


Strategy = Callable[[PatternVariant, ProblemView], VariantOutcome]

STRATEGIES: Dict[str, Strategy] = {
    "count_loop_fixed": count_loop,
    "range_loop_bounded": range_loop,
    "while_loop_condition": while_loop,
    "conditional_chain": conditional_chain,
    "nested_conditional": nested,
    "cached_lookup_first": cached_lookup_first,
    "adaptive_deep_search": adaptive_deep_search,
}


def default_variants() -> List[PatternVariant]:
    return [
        PatternVariant("count_loop_fixed", PatternType.COUNT_LOOP, "Fixed iteration count loop", 100),
        PatternVariant("range_loop_bounded", PatternType.RANGE_LOOP, "Range-based iteration with bounds", 500),
        PatternVariant("while_loop_condition", PatternType.WHILE_LOOP, "Condition-based loop with early exit", 1000),
        PatternVariant("conditional_chain", PatternType.CONDITIONAL_CHAIN, "Branch on target size, then iterate", 1000),
        PatternVariant("nested_conditional", PatternType.NESTED_STRUCTURE, "Nested loops with conditional branching", 200),
        PatternVariant("cached_lookup_first", PatternType.HYBRID, "Check cache first, then iterate if needed", 50, uses_cache=True),
        PatternVariant("adaptive_deep_search", PatternType.HYBRID, "Adaptive search with progressive deepening", 2000, uses_cache=True),
    ]


class PatternCoordinator:
    def __init__(
        self,
        store: CacheStore,
        config: Optional[SolverConfig] = None,
        variants: Optional[Sequence[PatternVariant]] = None,
        strategies: Optional[Mapping[str, Strategy]] = None,
    ):
        self.store = store
        self.config = config or SolverConfig()
        self._variants = list(variants) if variants is not None else None
        self.strategies: Dict[str, Strategy] = dict(STRATEGIES)
        if strategies:
            self.strategies.update(strategies)
        self.matcher = FuzzyMatcher(store)

    # ---------------- GENERATED ----------------

    def _menu(self) -> List[PatternVariant]:
        return list(self._variants) if self._variants is not None else default_variants()

    def generate(self, profile: ProblemProfile) -> List[PatternVariant]:
        """Variant menu for a profile; every profile races the full menu."""
        menu = self._menu()
        missing = [v.name for v in menu if v.name not in self.strategies]
        if missing:
            raise SolverError(f"No strategy registered for variant(s): {missing}")
        logger.debug("Generated %d variants for %s", len(menu), profile.signature())
        return menu

    # ---------------- RUNNING ----------------

    def _view(self, spec: ProblemSpec) -> ProblemView:
        values = tuple(spec.known_values())
        key = CacheKey.build(spec.scope, spec.target, values).text()
        known = {k: r.result_value for k, r in self.store.solutions().items() if r.accuracy_pct == 100.0}
        return ProblemView(target=spec.target, values=values, key=key, known=MappingProxyType(known))

    def _execute(self, variant: PatternVariant, view: ProblemView) -> VariantResult:
        start = time.perf_counter()
        try:
            out = self.strategies[variant.name](variant, view)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000.0
            logger.warning("Variant %s failed: %s", variant.name, e)
            err = e if isinstance(e, SolverError) else SolverError(f"{type(e).__name__}: {e}")
            return VariantResult(variant, 0.0, elapsed, 0, None, err)
        elapsed = (time.perf_counter() - start) * 1000.0
        return VariantResult(variant, out.correctness_pct, elapsed, out.iterations, out.found_value)

    def _timeout_result(self, variant: PatternVariant, elapsed_ms: float) -> VariantResult:
        timeout_s = self.config.variant_timeout_s
        logger.warning("Variant %s exceeded %.3fs; scored as 0%% correct", variant.name, timeout_s)
        return VariantResult(variant, 0.0, elapsed_ms, 0, None,
                             TimeoutExceeded(f"{variant.name} exceeded {timeout_s}s"))

    def run(self, variants: Sequence[PatternVariant], view: ProblemView) -> List[VariantResult]:
        """
        Execute every variant concurrently and collect one result per variant,
        in menu order. Variants still running at their deadline (or that
        finished late) score zero; their threads are left to finish on
        their own and their output is discarded.
        """
        if not variants:
            return []
        timeout_s = self.config.variant_timeout_s
        workers = min(len(variants), self.config.max_workers or os.cpu_count() or 1)
        waves = math.ceil(len(variants) / workers)
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tss-variant")
        try:
            futures = [pool.submit(self._execute, v, view) for v in variants]
            wait(futures, timeout=timeout_s * waves)
            results: List[VariantResult] = []
            for v, fut in zip(variants, futures):
                if not fut.done():
                    results.append(self._timeout_result(v, timeout_s * 1000.0))
                    continue
                r = fut.result()
                if r.execution_time_ms > timeout_s * 1000.0:
                    r = self._timeout_result(v, r.execution_time_ms)
                results.append(r)
            return results
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    # ---------------- SCORED / CACHED ----------------

    def _record(self, signature: str, profile: ProblemProfile, winner: VariantResult) -> PatternRecord:
        return PatternRecord(
            problem_signature=signature,
            pattern_type=winner.variant.pattern_type,
            strategy=winner.variant.name,
            profile=ProfileModel.from_profile(profile),
            success_rate=winner.correctness_pct,
            avg_iterations=float(winner.iterations),
            execution_time_ms=winner.execution_time_ms,
            times_used=1,
        )

    def _probe(self, record: PatternRecord, view: ProblemView) -> Optional[VariantResult]:
        # Re-run the cached winner's strategy on the current problem.
        variant = next((v for v in self._menu() if v.name == record.strategy), None)
        if variant is None or variant.name not in self.strategies:
            return None
        return self.run([variant], view)[0]

    def lookup(self, profile: ProblemProfile) -> Optional[PatternRecord]:
        """Cached pattern for a bare profile (exact, then fuzzy); no round, no probe."""
        signature = profile.signature()
        matched = signature if self.store.get_pattern(signature) is not None else self.matcher.find_similar(profile)
        if matched is None:
            return None
        return self.store.touch_pattern(matched)

    def learn(self, spec: ProblemSpec) -> RoundReport:
        """
        Return the pattern for `spec`'s problem class: a verified cache hit
        (exact or fuzzy signature) or the winner of a fresh round.
        """
        if not spec.is_resolved():
            raise UnresolvedOperands("Resolve placeholders before learning a pattern")
        profile = ProblemProfile.of(spec)
        signature = profile.signature()
        view = self._view(spec)

        cached = self.store.get_pattern(signature)
        matched = signature if cached is not None else self.matcher.find_similar(profile)
        if cached is None and matched is not None:
            cached = self.store.get_pattern(matched)

        stale = False
        if cached is not None:
            probe = self._probe(cached, view)
            if probe is not None and probe.correctness_pct >= self.config.probe_threshold:
                touched = self.store.touch_pattern(matched) or cached
                logger.info("Pattern cache hit %s -> %s (%s)", signature, matched, touched.strategy)
                return RoundReport(signature=signature, record=touched, cache_hit=True,
                                   matched_signature=matched, probe=probe)
            stale = matched == signature
            logger.info("Cached pattern %s failed its probe (%s); relearning", matched,
                        "no strategy" if probe is None else f"{probe.correctness_pct:.1f}%")

        states = [RoundState.GENERATED]
        variants = self.generate(profile)

        states.append(RoundState.RUNNING)
        results = self.run(variants, view)

        winner = select_winner(results)
        states.append(RoundState.SCORED)
        logger.info("Best pattern for %s: %s (%s) %.1f%% in %.2fms, %d iterations",
                    signature, winner.variant.name, winner.variant.pattern_type.value,
                    winner.correctness_pct, winner.execution_time_ms, winner.iterations)

        record = self._record(signature, profile, winner)
        cached_ok = False
        if winner.correctness_pct >= self.config.min_cache_correctness:
            if self.store.put_pattern(record, force=stale):
                cached_ok = True
                states.append(RoundState.CACHED)
                record = self.store.get_pattern(signature) or record
        return RoundReport(signature=signature, record=record, states=states, results=results,
                           cached=cached_ok, matched_signature=matched)
