import pytest

from tss.engine import Engine, is_complex
from tss.errors import SolverError
from tss.models import SolutionRecord
from tss.solver import InsufficientInputs
from tss.store import CacheStore
from tss.tracer import Tracer
from tss.types import (CacheKey, Complexity, OperandBucket, PatternType, ProblemProfile, ProblemSpec,
                       TargetBucket)


def test_solves_and_persists(engine, cache_path):
    rec = engine.resolve_and_solve(ProblemSpec.of(56, [1, 2, 3, 55]))
    assert rec.equation_text == "1 + 55"
    assert rec.accuracy_pct == 100.0
    assert rec.key == "global|56|1,2,3,55"
    assert CacheStore(cache_path).get(rec.key).equation_text == "1 + 55"


def test_repeat_request_uses_cache(engine):
    spec = ProblemSpec.of(777, [121, 6, 51])
    first = engine.resolve_and_solve(spec)
    t = Tracer()
    second = engine.resolve_and_solve(spec, trace=t)
    assert second.equation_text == first.equation_text == "121 * 6 + 51"
    assert second.times_used == first.times_used + 1
    assert "cache_hit" in t.kinds()
    assert "search" not in t.kinds()


def test_scopes_are_separate(engine):
    engine.resolve_and_solve(ProblemSpec.of(56, [1, 55], scope="a"))
    engine.resolve_and_solve(ProblemSpec.of(56, [1, 55], scope="b"))
    assert set(engine.store.solutions()) == {"a|56|1,55", "b|56|1,55"}


def test_placeholders_fill_from_named_values(engine):
    for name, value in [("a", 5), ("b", 80), ("c", 121), ("d", 123), ("e", 300)]:
        engine.store.remember_value(name, value, f"{value} + 0")
    t = Tracer()
    rec = engine.resolve_and_solve(ProblemSpec.of(777, [None, None, None]), trace=t)
    assert t.last("resolve")["picked"] == [5, 121, 300]
    assert rec.key == "global|777|5,121,300"


def test_repeat_placeholder_request_is_idempotent(engine):
    engine.store.remember_value("a", 5, "2 + 3")
    engine.store.remember_value("b", 80, "40 * 2")
    spec = ProblemSpec.of(85, [None, None])
    first = engine.resolve_and_solve(spec)
    second = engine.resolve_and_solve(spec)
    assert first.equation_text == second.equation_text == "5 + 80"
    assert first.key == second.key == "global|85|5,80"
    assert second.times_used == first.times_used + 1
    assert engine.store.candidate_pool() == [5.0, 80.0]


def test_mixed_known_and_placeholder(engine):
    engine.store.remember_value("width", 121, "100 + 21")
    rec = engine.resolve_and_solve(ProblemSpec.of(777, [6, None, 51]))
    assert rec.result_value == 777
    assert rec.accuracy_pct == 100.0


def test_named_result_feeds_later_problems(engine):
    engine.resolve_and_solve(ProblemSpec.of(56, [1, 55]), name="total")
    val = engine.store.get_value("total")
    assert val.value == 56
    assert val.source_equation == "1 + 55"
    assert 56.0 in engine.store.candidate_pool()


def test_no_inputs(engine):
    with pytest.raises(InsufficientInputs):
        engine.resolve_and_solve(ProblemSpec.of(5, []))
    with pytest.raises(InsufficientInputs):
        engine.resolve_and_solve(ProblemSpec.of(5, [None]))


def test_damaged_cache_entry_is_repaired(engine):
    key = CacheKey.build("global", 56, [1, 55])
    engine.store.put(key, SolutionRecord(key=key.text(), equation_text="1 + 54", result_value=56,
                                         accuracy_pct=100.0, discovery_time_ms=0.0, times_used=3))
    rec = engine.resolve_and_solve(ProblemSpec.of(56, [1, 55]))
    assert rec.equation_text == "1 + 55"
    assert rec.times_used == 3


def test_inexact_results_get_another_attempt(engine):
    spec = ProblemSpec.of(1000, [1, 2])
    first = engine.resolve_and_solve(spec)
    second = engine.resolve_and_solve(spec)
    assert second.accuracy_pct < 100.0
    assert second.accuracy_pct == first.accuracy_pct
    assert second.equation_text == first.equation_text


def test_is_complex():
    assert is_complex(ProblemSpec.of(150, [1, 2]))
    assert is_complex(ProblemSpec.of(5, [1, 2, 3]))
    assert not is_complex(ProblemSpec.of(50, [1, 2]))


def test_learn_pattern(engine):
    rec = engine.learn_pattern(ProblemSpec.of(716539, [97, 89, 83]))
    assert rec.pattern_type == PatternType.HYBRID
    assert rec.success_rate == 100.0


def test_learn_pattern_prefers_cached_solution(engine):
    spec = ProblemSpec.of(777, [121, 6, 51])
    engine.resolve_and_solve(spec)
    t = Tracer()
    rec = engine.learn_pattern(spec, trace=t)
    assert rec.pattern_type == PatternType.HYBRID
    assert rec.avg_iterations == 0
    assert t.last("pattern")["cached"] is True


def test_from_config(config, cache_path):
    eng = Engine.from_config(config)
    eng.resolve_and_solve(ProblemSpec.of(3, [1, 2]))
    assert cache_path.exists()


def test_learn_pattern_from_bare_profile(engine):
    with pytest.raises(SolverError):
        engine.learn_pattern(ProblemProfile.of(ProblemSpec.of(716539, [97, 89, 83])))
    learned = engine.learn_pattern(ProblemSpec.of(716539, [97, 89, 83]))
    # LARGE vs HUGE target bucket: answered by the fuzzy matcher.
    similar = ProblemProfile(TargetBucket.LARGE, OperandBucket.THREE, Complexity.COMPLEX)
    rec = engine.learn_pattern(similar)
    assert rec.problem_signature == learned.problem_signature
    assert rec.times_used == 2
