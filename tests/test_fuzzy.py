from tss.fuzzy import FuzzyMatcher
from tss.models import PatternRecord, ProfileModel
from tss.types import Complexity, OperandBucket, PatternType, ProblemProfile, TargetBucket


def _store_pattern(store, profile, last_used):
    store.put_pattern(PatternRecord(
        problem_signature=profile.signature(), pattern_type=PatternType.WHILE_LOOP,
        strategy="while_loop_condition", profile=ProfileModel.from_profile(profile),
        success_rate=100.0, timestamp=last_used, last_used=last_used))


def _profile(target, operands=OperandBucket.THREE, complexity=Complexity.MEDIUM):
    return ProblemProfile(target, operands, complexity)


def test_most_recent_similar_wins(store):
    small = _profile(TargetBucket.SMALL)
    large = _profile(TargetBucket.LARGE)
    _store_pattern(store, small, last_used=100)
    _store_pattern(store, large, last_used=200)
    _store_pattern(store, _profile(TargetBucket.MEDIUM, OperandBucket.TWO), last_used=300)

    matcher = FuzzyMatcher(store)
    assert matcher.find_similar(_profile(TargetBucket.MEDIUM)) == large.signature()
    assert matcher.find_similar(_profile(TargetBucket.HUGE)) == large.signature()
    assert matcher.find_similar(_profile(TargetBucket.TINY)) == small.signature()


def test_complexity_must_match(store):
    _store_pattern(store, _profile(TargetBucket.SMALL), last_used=100)
    assert FuzzyMatcher(store).find_similar(_profile(TargetBucket.SMALL, complexity=Complexity.COMPLEX)) is None


def test_target_bucket_two_steps_away_is_not_similar(store):
    _store_pattern(store, _profile(TargetBucket.TINY), last_used=100)
    assert FuzzyMatcher(store).find_similar(_profile(TargetBucket.MEDIUM)) is None


def test_own_signature_is_skipped(store):
    p = _profile(TargetBucket.MEDIUM)
    _store_pattern(store, p, last_used=100)
    assert FuzzyMatcher(store).find_similar(p) is None


def test_profile_signature():
    p = ProblemProfile(TargetBucket.MEDIUM, OperandBucket.THREE, Complexity.MEDIUM)
    assert p.signature() == "target:medium|operands:three|complexity:medium"
    assert ProfileModel.from_profile(p).to_profile() == p
