# -----------------------------------------------------------------------------
# Engine: the two operations the surrounding interpreter calls
# Responsibilities:
#   • resolve_and_solve: fill placeholders from the cache (Selector), reuse a
#     verified exact cached solution, otherwise search (Equation Solver),
#     write the result through the Cache Store and return the live record
#   • learn_pattern: learn / reuse the best control-flow strategy for a
#     problem class (Pattern Learning Coordinator)
#   • is_complex: which problems deserve pattern learning
# The store is always an explicit handle; nothing here is a global.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import time
from typing import List, Optional, Union

from .config import SolverConfig
from .errors import SolverError
from .models import PatternRecord, SolutionRecord
from .patterns import PatternCoordinator, RoundReport
from .selector import Selector
from .solver import EquationSolver, InsufficientInputs
from .store import CacheStore
from .tracer import Tracer
from .types import CacheKey, Known, ProblemProfile, ProblemSpec, Unresolved
from .verify import check_equation

logger = logging.getLogger(__name__)

COMPLEX_TARGET = 100.0
COMPLEX_OPERANDS = 3


def is_complex(problem: ProblemSpec) -> bool:
    """Heuristic used by the interpreter to decide on pattern learning."""
    return abs(problem.target) > COMPLEX_TARGET or len(problem.operands) >= COMPLEX_OPERANDS


class Engine:
    def __init__(
        self,
        store: CacheStore,
        config: Optional[SolverConfig] = None,
        solver: Optional[EquationSolver] = None,
        selector: Optional[Selector] = None,
        coordinator: Optional[PatternCoordinator] = None,
    ):
        self.store = store
        self.config = config or SolverConfig()
        self.solver = solver or EquationSolver()
        self.selector = selector or Selector()
        self.coordinator = coordinator or PatternCoordinator(store, self.config)

    @staticmethod
    def from_config(config: Optional[SolverConfig] = None) -> "Engine":
        """Build an engine whose store lives at config.cache_path."""
        config = config or SolverConfig.from_env()
        return Engine(CacheStore(config.cache_path), config)

    # ---------------- placeholder resolution ----------------

    def resolve(self, problem: ProblemSpec, trace: Optional[Tracer] = None) -> ProblemSpec:
        """
        Return a copy of `problem` whose Unresolved operands are filled from
        the store's candidate pool. Deterministic for a given store snapshot.
        Placeholders that cannot be filled (empty pool) are dropped.
        """
        missing = problem.unresolved_count()
        if missing == 0:
            return problem
        picks = self.selector.select(self.store.candidate_pool(), missing, problem.target, trace=trace)
        fills = iter(picks)
        operands: List = []
        for op in problem.operands:
            if isinstance(op, Unresolved):
                v = next(fills, None)
                if v is not None:
                    operands.append(Known(v))
            else:
                operands.append(op)
        if len(picks) < missing:
            logger.warning("Filled %d of %d placeholder(s); build up the cache or pass concrete inputs",
                           len(picks), missing)
        return ProblemSpec(target=problem.target, operands=operands, scope=problem.scope)

    # ---------------- main entry ----------------

    def resolve_and_solve(self, problem: ProblemSpec, name: Optional[str] = None,
                          trace: Optional[Tracer] = None) -> SolutionRecord:
        """
        Solve `problem` and return the live SolutionRecord for it.

        - A cached exact record whose text still evaluates to its value is
          reused (times_used += 1) without searching.
        - Otherwise the solver runs, the result is offered to the store
          (replace-only-if-better) and the live record is returned.
        - When `name` is given the result is remembered as a named value, which
          later problems may use to fill placeholders.
        Raises InsufficientInputs when no operand is available after resolution.
        """
        resolved = self.resolve(problem, trace)
        values = resolved.known_values()
        if not values:
            raise InsufficientInputs(f"No operands for target {problem.target}")
        key = CacheKey.build(resolved.scope, resolved.target, values)

        cached = self.store.get(key)
        damaged = False
        if cached is not None and cached.accuracy_pct == 100.0:
            if check_equation(cached.equation_text, cached.result_value):
                record = self.store.touch(key) or cached
                if trace is not None:
                    trace.add("cache_hit", {"key": key.text(), "equation": record.equation_text})
                logger.debug("Using cached solution %s = %s", record.equation_text, record.result_value)
                self._remember(name, record)
                return record
            logger.warning("Cached equation %r for %s does not evaluate to %s; re-solving",
                           cached.equation_text, key.text(), cached.result_value)
            damaged = True

        start = time.perf_counter()
        result = self.solver.solve(resolved.target, values, trace=trace)
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        fresh = SolutionRecord(key=key.text(), equation_text=result.equation_text,
                               result_value=result.value, accuracy_pct=result.accuracy_pct,
                               discovery_time_ms=elapsed_ms, times_used=1)
        if damaged:
            self.store.repair(key, fresh)
            changed = True
        else:
            changed = self.store.put(key, fresh)
            if not changed and self.config.improve_attempts > 0 and result.accuracy_pct < 100.0:
                self.store.improve(key, self.config.improve_attempts, self.solver)
        if trace is not None:
            trace.add("cache_write", {"key": key.text(), "stored": changed, "repaired": damaged})

        record = self.store.get(key) or fresh
        self._remember(name, record)
        return record

    def _remember(self, name: Optional[str], record: SolutionRecord) -> None:
        if name:
            self.store.remember_value(name, record.result_value, record.equation_text)

    # ---------------- pattern learning ----------------

    def learn_pattern_report(self, problem: ProblemSpec, trace: Optional[Tracer] = None) -> RoundReport:
        resolved = self.resolve(problem, trace)
        report = self.coordinator.learn(resolved)
        if trace is not None:
            trace.add("pattern", {"signature": report.signature, "strategy": report.record.strategy,
                                  "cache_hit": report.cache_hit, "cached": report.cached})
        return report

    def learn_pattern(self, problem: Union[ProblemSpec, ProblemProfile],
                      trace: Optional[Tracer] = None) -> PatternRecord:
        """
        Cached or freshly learned best strategy for the problem's class.
        A bare ProblemProfile has no operands to race variants on, so it can
        only be answered from the cache (exact or fuzzy signature).
        """
        if isinstance(problem, ProblemProfile):
            record = self.coordinator.lookup(problem)
            if record is None:
                raise SolverError(f"No cached pattern for {problem.signature()}; pass a ProblemSpec to learn one")
            return record
        return self.learn_pattern_report(problem, trace).record
