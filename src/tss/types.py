# -----------------------------------------------------------------------------
# Types module: Shared dataclasses and enums for the solver ecosystem
# Purpose:
#   Define structured representations for problems, operands, search
#   candidates and the coarse problem profile used for pattern reuse.
#   Persisted records live in .models (pydantic); everything here is in-memory.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class Known:
    # A concrete operand supplied directly by the caller.
    value: float


@dataclass(frozen=True)
class Unresolved:
    # Placeholder slot; filled from cached history by the Selector.
    label: str = "?"


Operand = Union[Known, Unresolved]


@dataclass
class ProblemSpec:
    """
    A target-seeking request.
    - target: the number we want an expression to hit
    - operands: ordered inputs, some possibly Unresolved
    - scope: owning scope name (class/variable in the surrounding interpreter)
    """
    target: float
    operands: List[Operand] = field(default_factory=list)
    scope: str = "global"

    @staticmethod
    def of(target: float, values: Sequence[Optional[float]], scope: str = "global") -> "ProblemSpec":
        """Convenience: None entries become Unresolved placeholders."""
        ops: List[Operand] = [Unresolved() if v is None else Known(float(v)) for v in values]
        return ProblemSpec(target=float(target), operands=ops, scope=scope)

    def unresolved_count(self) -> int:
        return sum(1 for o in self.operands if isinstance(o, Unresolved))

    def is_resolved(self) -> bool:
        return self.unresolved_count() == 0

    def known_values(self) -> List[float]:
        return [o.value for o in self.operands if isinstance(o, Known)]


@dataclass(frozen=True)
class ExpressionCandidate:
    # Ephemeral: one template applied to one ordered operand selection.
    template_id: str
    operand_values: Tuple[float, ...]
    computed: float


@dataclass(frozen=True)
class SolutionResult:
    equation_text: str
    value: float
    accuracy_pct: float
    exact: bool
    template_id: str = ""
    operators: int = 0
    candidates_tried: int = 0


def _sig_round(x: float, digits: int = 9) -> float:
    # Bucket floats to a fixed number of significant digits for key stability.
    if x == 0 or not math.isfinite(x):
        return x
    return round(x, digits - 1 - int(math.floor(math.log10(abs(x)))))


def _num_text(x: float) -> str:
    x = _sig_round(x)
    if x == int(x) and abs(x) < 1e15:
        return str(int(x))
    return repr(x)


@dataclass(frozen=True)
class CacheKey:
    """
    Composite identity of a SolutionRecord: (scope, target, operand signature).
    Operands are sorted and rounded to 9 significant digits so that
    re-ordered or float-noisy inputs map to one record.
    """
    scope: str
    target: float
    operands: Tuple[float, ...]

    @staticmethod
    def build(scope: str, target: float, operands: Sequence[float]) -> "CacheKey":
        return CacheKey(scope=scope, target=_sig_round(float(target)),
                        operands=tuple(sorted(_sig_round(float(v)) for v in operands)))

    def text(self) -> str:
        ops = ",".join(_num_text(v) for v in self.operands)
        return f"{self.scope}|{_num_text(self.target)}|{ops}"

    @staticmethod
    def parse(text: str) -> "CacheKey":
        scope, target, ops = text.rsplit("|", 2)
        values = tuple(float(v) for v in ops.split(",")) if ops else ()
        return CacheKey(scope=scope, target=float(target), operands=values)

    def __str__(self) -> str:
        return self.text()


# ---- Problem profile: three tagged buckets compared field by field ---------

class TargetBucket(int, Enum):
    TINY = 0     # |t| < 10
    SMALL = 1    # |t| < 100
    MEDIUM = 2   # |t| < 1000
    LARGE = 3    # |t| < 10000
    HUGE = 4

    @staticmethod
    def of(target: float) -> "TargetBucket":
        t = abs(target)
        if t < 10:
            return TargetBucket.TINY
        if t < 100:
            return TargetBucket.SMALL
        if t < 1000:
            return TargetBucket.MEDIUM
        if t < 10000:
            return TargetBucket.LARGE
        return TargetBucket.HUGE


class OperandBucket(int, Enum):
    NONE = 0
    ONE = 1
    TWO = 2
    THREE = 3
    MANY = 4

    @staticmethod
    def of(count: int) -> "OperandBucket":
        return OperandBucket(min(max(count, 0), 4))


class Complexity(str, Enum):
    SIMPLE = "simple"    # direct calculation
    MEDIUM = "medium"    # few operations
    COMPLEX = "complex"  # many operations / nested

    @staticmethod
    def of(target: float, count: int) -> "Complexity":
        if target < 100 and count <= 2:
            return Complexity.SIMPLE
        if target < 1000 and count <= 4:
            return Complexity.MEDIUM
        return Complexity.COMPLEX


class PatternType(str, Enum):
    COUNT_LOOP = "CountLoop"
    RANGE_LOOP = "RangeLoop"
    WHILE_LOOP = "WhileLoop"
    CONDITIONAL_CHAIN = "ConditionalChain"
    NESTED_STRUCTURE = "NestedStructure"
    HYBRID = "Hybrid"


@dataclass(frozen=True)
class ProblemProfile:
    target_bucket: TargetBucket
    operand_bucket: OperandBucket
    complexity: Complexity

    @staticmethod
    def of(spec: ProblemSpec) -> "ProblemProfile":
        n = len(spec.operands)
        return ProblemProfile(TargetBucket.of(spec.target), OperandBucket.of(n),
                              Complexity.of(spec.target, n))

    def signature(self) -> str:
        # Coarser than CacheKey on purpose: similar problems share one record.
        return (f"target:{self.target_bucket.name.lower()}"
                f"|operands:{self.operand_bucket.name.lower()}"
                f"|complexity:{self.complexity.value}")

    def is_similar_to(self, other: "ProblemProfile") -> bool:
        return (self.operand_bucket == other.operand_bucket
                and abs(int(self.target_bucket) - int(other.target_bucket)) <= 1
                and self.complexity == other.complexity)
