# -----------------------------------------------------------------------------
# Persisted records (pydantic)
# Purpose:
#   Schema for everything the Cache Store writes to disk: solution records,
#   learned control-flow patterns and named values. The whole store is one
#   CacheDocument serialised as JSON.
# -----------------------------------------------------------------------------

from __future__ import annotations
import time
from typing import Dict, Optional
from pydantic import BaseModel, Field

from .types import Complexity, OperandBucket, PatternType, ProblemProfile, TargetBucket

CACHE_VERSION = 1


def now_ms() -> int:
    return int(time.time() * 1000)


class SolutionRecord(BaseModel):
    key: str
    equation_text: str
    result_value: float
    accuracy_pct: float = Field(ge=0.0, le=100.0)
    discovery_time_ms: float = 0.0
    times_used: int = 0
    created_at: int = Field(default_factory=now_ms)

    def beats(self, other: "SolutionRecord") -> bool:
        """Replace-only-if-better: strictly more accurate, or as accurate and faster."""
        if self.accuracy_pct != other.accuracy_pct:
            return self.accuracy_pct > other.accuracy_pct
        return self.discovery_time_ms < other.discovery_time_ms


class ProfileModel(BaseModel):
    # Serialised ProblemProfile; buckets stored by name for readability.
    target_bucket: str
    operand_bucket: str
    complexity: str

    @staticmethod
    def from_profile(p: ProblemProfile) -> "ProfileModel":
        return ProfileModel(target_bucket=p.target_bucket.name,
                            operand_bucket=p.operand_bucket.name,
                            complexity=p.complexity.value)

    def to_profile(self) -> ProblemProfile:
        return ProblemProfile(TargetBucket[self.target_bucket],
                              OperandBucket[self.operand_bucket],
                              Complexity(self.complexity))


class PatternRecord(BaseModel):
    problem_signature: str
    pattern_type: PatternType
    strategy: str = ""
    profile: Optional[ProfileModel] = None
    success_rate: float = 0.0
    avg_iterations: float = 0.0
    execution_time_ms: float = 0.0
    times_used: int = 1
    timestamp: int = Field(default_factory=now_ms)
    last_used: int = Field(default_factory=now_ms)


class ValueRecord(BaseModel):
    # A named value produced by the surrounding interpreter (e.g. a variable
    # assigned from a solved equation).
    name: str
    value: float
    source_equation: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)


class CacheDocument(BaseModel):
    version: int = CACHE_VERSION
    solutions: Dict[str, SolutionRecord] = Field(default_factory=dict)
    patterns: Dict[str, PatternRecord] = Field(default_factory=dict)
    values: Dict[str, ValueRecord] = Field(default_factory=dict)
