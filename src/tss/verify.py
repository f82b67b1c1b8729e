# -----------------------------------------------------------------------------
# Equation verification (SymPy)
# Purpose:
#   Re-evaluate stored equation text independently of the evaluator that
#   produced it, so a cached record whose text no longer yields its value
#   (hand-edited or damaged cache entry) is detected before reuse.
# Safety:
#   - sympify runs with an explicit locals map limited to the functions the
#     evaluator renders; the text comes from our own cache file.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from typing import Optional
from sympy import Abs, Add, Mul, Rational, ceiling, factorial, floor, sqrt, sympify, N
from sympy.core.sympify import SympifyError

logger = logging.getLogger(__name__)

REL_TOL = 1e-9


def _avg(*xs):
    return Add(*xs) / len(xs)


def _gmean(*xs):
    return Mul(*xs) ** Rational(1, len(xs))


_LOCALS = {
    "sqrt": sqrt,
    "abs": Abs,
    "factorial": factorial,
    "ceil": ceiling,
    "floor": floor,
    "avg": _avg,
    "gmean": _gmean,
}


def equation_value(text: str) -> Optional[float]:
    """
    Numeric value of a rendered equation ('121 * 6 + 51', 'sqrt(16)', ...),
    or None when it cannot be parsed or is not a finite real number.
    '^' is read as exponentiation and '%' as floor modulo.
    """
    try:
        expr = sympify(text, locals=_LOCALS, convert_xor=True)
        val = N(expr)
        if not val.is_real or not val.is_finite:
            return None
        return float(val)
    except (SympifyError, TypeError, ValueError, ZeroDivisionError, SyntaxError) as e:
        logger.debug("Could not evaluate %r: %s", text, e)
        return None


def check_equation(text: str, expected: float, rel_tol: float = REL_TOL) -> bool:
    """True when `text` evaluates to `expected` within a relative tolerance."""
    val = equation_value(text)
    if val is None:
        return False
    return abs(val - expected) <= rel_tol * max(abs(expected), 1.0)
