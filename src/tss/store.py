# -----------------------------------------------------------------------------
# Cache Store
# Purpose:
#   Persistent key/value store for SolutionRecords (by CacheKey), learned
#   PatternRecords (by problem signature) and named values. The whole store
#   is one JSON document, read once at construction and rewritten in full
#   after every successful mutation.
# Guarantees:
#   - At most one live record per key; replacement only by a strictly better
#     record (see SolutionRecord.beats).
#   - Writes go to a temp file in the same directory, then os.replace(), so a
#     reader sees either the old or the new file, never a partial one.
#   - A missing or unreadable file yields an empty store, never a crash.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from .errors import SolverError
from .models import CacheDocument, PatternRecord, SolutionRecord, ValueRecord, now_ms
from .solver import EquationSolver
from .types import CacheKey

logger = logging.getLogger(__name__)

KeyLike = Union[CacheKey, str]

# Named values without a source equation are only a weak signal; cap them.
MAX_PLAIN_VALUES = 3


class CacheCorrupt(SolverError): pass


def _key_text(key: KeyLike) -> str:
    return key.text() if isinstance(key, CacheKey) else str(key)


def read_document(path: Union[str, Path]) -> CacheDocument:
    """
    Parse a cache file. A missing file is an empty document; anything
    unreadable or malformed raises CacheCorrupt.
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        return CacheDocument()
    except (OSError, UnicodeDecodeError) as e:
        raise CacheCorrupt(f"Cannot read cache file {p}: {e}")
    try:
        return CacheDocument.model_validate_json(text)
    except ValidationError as e:
        raise CacheCorrupt(f"Malformed cache file {p}: {e.error_count()} error(s)")


def write_document(path: Union[str, Path], doc: CacheDocument) -> None:
    """Atomically replace `path` with the serialised document."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(doc.model_dump_json(indent=2))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, p)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class CacheStore:
    """
    Explicit store handle; pass it to whoever needs it. `path=None` keeps the
    store in memory only (useful in tests).
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self.path: Optional[Path] = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._doc = self._load()

    # ---------------- persistence ----------------

    def _load(self) -> CacheDocument:
        if self.path is None:
            return CacheDocument()
        try:
            doc = read_document(self.path)
        except CacheCorrupt as e:
            logger.warning("%s; starting with an empty cache", e)
            return CacheDocument()
        logger.info("Loaded cache %s: %d solutions, %d patterns, %d values",
                    self.path, len(doc.solutions), len(doc.patterns), len(doc.values))
        return doc

    def _flush(self) -> None:
        if self.path is not None:
            write_document(self.path, self._doc)

    def snapshot(self) -> CacheDocument:
        # Deep copy; callers may read it freely while the store keeps changing.
        with self._lock:
            return self._doc.model_copy(deep=True)

    def reset(self) -> None:
        """Operator action: drop every record and rewrite the file."""
        with self._lock:
            self._doc = CacheDocument()
            self._flush()
        logger.warning("Cache reset%s", f" ({self.path})" if self.path else "")

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "solutions": len(self._doc.solutions),
                "exact_solutions": sum(1 for r in self._doc.solutions.values() if r.accuracy_pct == 100.0),
                "patterns": len(self._doc.patterns),
                "values": len(self._doc.values),
            }

    # ---------------- solutions ----------------

    def get(self, key: KeyLike) -> Optional[SolutionRecord]:
        with self._lock:
            rec = self._doc.solutions.get(_key_text(key))
            return rec.model_copy() if rec is not None else None

    def put(self, key: KeyLike, record: SolutionRecord) -> bool:
        """
        Store `record` under `key` unless the live record is at least as good.
        Returns True when the store changed (and was flushed).
        """
        k = _key_text(key)
        with self._lock:
            current = self._doc.solutions.get(k)
            if current is not None and not record.beats(current):
                logger.debug("Kept existing record for %s (%.4f%% vs %.4f%%)",
                             k, current.accuracy_pct, record.accuracy_pct)
                return False
            updates = {"key": k}
            if current is not None:
                updates["times_used"] = max(current.times_used, record.times_used)
            self._doc.solutions[k] = record.model_copy(update=updates)
            self._flush()
        logger.info("Cached solution %s: %s = %s (%.4f%%)", k, record.equation_text,
                    record.result_value, record.accuracy_pct)
        return True

    def repair(self, key: KeyLike, record: SolutionRecord) -> None:
        """
        Replace a record whose equation text failed verification. The damaged
        record is not a valid solution, so the better-only rule does not
        protect it; usage count carries over.
        """
        k = _key_text(key)
        with self._lock:
            current = self._doc.solutions.get(k)
            updates = {"key": k}
            if current is not None:
                updates["times_used"] = max(current.times_used, record.times_used)
            self._doc.solutions[k] = record.model_copy(update=updates)
            self._flush()
        logger.warning("Repaired solution %s: %s = %s", k, record.equation_text, record.result_value)

    def touch(self, key: KeyLike) -> Optional[SolutionRecord]:
        """Count one reuse of a cached solution."""
        k = _key_text(key)
        with self._lock:
            rec = self._doc.solutions.get(k)
            if rec is None:
                return None
            rec = rec.model_copy(update={"times_used": rec.times_used + 1})
            self._doc.solutions[k] = rec
            self._flush()
            return rec.model_copy()

    def improve(self, key: KeyLike, attempts: int, solver: Optional[EquationSolver] = None) -> Optional[SolutionRecord]:
        """
        Re-run the solver `attempts` times against the key's own target and
        operands, keep the best attempt (fastest among equally accurate ones)
        and offer it to put(). Returns the live record afterwards.
        """
        ck = key if isinstance(key, CacheKey) else CacheKey.parse(key)
        if not ck.operands:
            return self.get(ck)
        solver = solver or EquationSolver()
        best: Optional[SolutionRecord] = None
        for _ in range(max(0, attempts)):
            start = time.perf_counter()
            res = solver.solve(ck.target, ck.operands)
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            cand = SolutionRecord(key=ck.text(), equation_text=res.equation_text,
                                  result_value=res.value, accuracy_pct=res.accuracy_pct,
                                  discovery_time_ms=elapsed_ms)
            if best is None or cand.beats(best):
                best = cand
        if best is not None:
            self.put(ck, best)
        return self.get(ck)

    def solutions(self) -> Dict[str, SolutionRecord]:
        with self._lock:
            return {k: r.model_copy() for k, r in self._doc.solutions.items()}

    # ---------------- patterns ----------------

    def get_pattern(self, signature: str) -> Optional[PatternRecord]:
        with self._lock:
            rec = self._doc.patterns.get(signature)
            return rec.model_copy(deep=True) if rec is not None else None

    def put_pattern(self, record: PatternRecord, force: bool = False) -> bool:
        """
        Store a learned pattern. Without `force` an existing record is only
        replaced by a higher success rate (or an equal one that ran faster);
        `force` is used when a verification probe found the old one stale.
        """
        sig = record.problem_signature
        with self._lock:
            current = self._doc.patterns.get(sig)
            if current is not None and not force:
                better = (record.success_rate > current.success_rate or
                          (record.success_rate == current.success_rate
                           and record.execution_time_ms < current.execution_time_ms))
                if not better:
                    return False
            updates = {}
            if current is not None:
                updates["times_used"] = max(current.times_used, record.times_used)
            self._doc.patterns[sig] = record.model_copy(update=updates, deep=True)
            self._flush()
        logger.info("Cached pattern %s -> %s (%s, %.1f%%)", sig, record.strategy,
                    record.pattern_type.value, record.success_rate)
        return True

    def touch_pattern(self, signature: str) -> Optional[PatternRecord]:
        with self._lock:
            rec = self._doc.patterns.get(signature)
            if rec is None:
                return None
            rec = rec.model_copy(update={"times_used": rec.times_used + 1, "last_used": now_ms()}, deep=True)
            self._doc.patterns[signature] = rec
            self._flush()
            return rec.model_copy(deep=True)

    def patterns(self) -> Dict[str, PatternRecord]:
        with self._lock:
            return {k: r.model_copy(deep=True) for k, r in self._doc.patterns.items()}

    # ---------------- named values ----------------

    def remember_value(self, name: str, value: float, source_equation: Optional[str] = None) -> ValueRecord:
        rec = ValueRecord(name=name, value=float(value), source_equation=source_equation)
        with self._lock:
            self._doc.values[name] = rec
            self._flush()
        logger.debug("Stored value %s = %s", name, value)
        return rec.model_copy()

    def get_value(self, name: str) -> Optional[ValueRecord]:
        with self._lock:
            rec = self._doc.values.get(name)
            return rec.model_copy() if rec is not None else None

    def candidate_pool(self) -> List[float]:
        """
        Values eligible to fill placeholders: computed named values first,
        then a few plain named values. Solution results stay out, or a repeat
        request would be filled with its own earlier answer. Values <= 1
        carry no leverage for the search and are skipped.
        """
        with self._lock:
            named = sorted(self._doc.values.values(), key=lambda r: r.name)
            computed = [r.value for r in named if r.source_equation and r.value > 1]
            plain = [r.value for r in named if not r.source_equation and r.value > 1][:MAX_PLAIN_VALUES]
        return computed + plain
