# -----------------------------------------------------------------------------
# Expression Evaluator
# Purpose:
#   Fixed-arity operator templates (1, 2 or 3 operands) that the Equation
#   Solver enumerates. Each template knows how to compute its value, how many
#   operators it uses (simplicity tie-break) and how to render itself as infix
#   text with minimal parentheses.
# Safety:
#   - Pure functions, no state.
#   - Anything outside a template's domain raises DomainError; the solver
#     drops that candidate.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import SolverError


class DomainError(SolverError): pass


# ---- Infix rendering --------------------------------------------------------
# A rendered node is (text, precedence, top-level operator or None).
Node = Tuple[str, int, Optional[str]]

_ATOM = 9
_PREC = {"+": 1, "-": 1, "*": 2, "/": 2, "%": 2, "^": 3}


def fmt_number(x: float) -> str:
    # Integers print without a trailing ".0"; negatives are wrapped so the
    # text parses back unambiguously ("-3^2" would otherwise mean -(3^2)).
    if x == int(x) and abs(x) < 1e15:
        text = str(int(x))
    else:
        text = repr(float(x))
    return f"({text})" if x < 0 else text


def _leaf(x: float) -> Node:
    return fmt_number(x), _ATOM, None


def _call(name: str, *args: Node) -> Node:
    return f"{name}({', '.join(a[0] for a in args)})", _ATOM, None


def _infix(op: str, left: Node, right: Node) -> Node:
    p = _PREC[op]
    lt, lp, _ = left
    rt, rp, rop = right
    if lp < p or (op == "^" and lp == p):
        lt = f"({lt})"
    if rp < p or (rp == p and op != "^" and not (op == rop and op in ("+", "*"))):
        rt = f"({rt})"
    return f"{lt} {op} {rt}", p, op


def _postfix_power(base: Node, exp: int) -> Node:
    bt, bp, _ = base
    if bp < _ATOM:
        bt = f"({bt})"
    return f"{bt}^{exp}", _PREC["^"], "^"


# ---- Primitive operators ----------------------------------------------------

def _add(a: float, b: float) -> float: return a + b
def _sub(a: float, b: float) -> float: return a - b
def _mul(a: float, b: float) -> float: return a * b


def _div(a: float, b: float) -> float:
    if b == 0:
        raise DomainError("division by zero")
    return a / b


def _pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except (OverflowError, ValueError) as e:
        raise DomainError(f"power {a}^{b}: {e}")


def _mod(a: float, b: float) -> float:
    # Floor-modulo (Python semantics) so rendered text re-evaluates identically.
    if b == 0:
        raise DomainError("modulo by zero")
    return a % b


BINARY_OPS: Dict[str, Callable[[float, float], float]] = {
    "+": _add, "-": _sub, "*": _mul, "/": _div, "^": _pow, "%": _mod,
}


def _sqrt(x: float) -> float:
    if x < 0:
        raise DomainError("square root of a negative")
    return math.sqrt(x)


def _factorial(x: float) -> float:
    if x != int(x) or not 0 <= x <= 12:
        raise DomainError(f"factorial outside 0..12 integers: {x}")
    return float(math.factorial(int(x)))


def _gmean(*xs: float) -> float:
    if any(x < 0 for x in xs):
        raise DomainError("geometric mean of a negative")
    prod = 1.0
    for x in xs:
        prod *= x
    if len(xs) == 2:
        return math.sqrt(prod)
    return prod ** (1.0 / len(xs))


# ---- Templates -------------------------------------------------------------

@dataclass(frozen=True)
class Template:
    id: str
    arity: int
    operators: int
    fn: Callable[..., float]
    render_fn: Callable[..., Node]

    def render(self, values: Sequence[float]) -> str:
        return self.render_fn(*(_leaf(v) for v in values))[0]


def _unary_templates() -> List[Template]:
    return [
        Template("a", 1, 0, lambda a: a, lambda a: a),
        Template("sqrt(a)", 1, 1, _sqrt, lambda a: _call("sqrt", a)),
        Template("abs(a)", 1, 1, abs, lambda a: _call("abs", a)),
        Template("a^2", 1, 1, lambda a: _pow(a, 2.0), lambda a: _postfix_power(a, 2)),
        Template("a^3", 1, 1, lambda a: _pow(a, 3.0), lambda a: _postfix_power(a, 3)),
        Template("factorial(a)", 1, 1, _factorial, lambda a: _call("factorial", a)),
        Template("ceil(a)", 1, 1, lambda a: float(math.ceil(a)), lambda a: _call("ceil", a)),
        Template("floor(a)", 1, 1, lambda a: float(math.floor(a)), lambda a: _call("floor", a)),
    ]


def _binary_template(op: str) -> Template:
    fn = BINARY_OPS[op]
    return Template(f"a{op}b", 2, 1, fn, lambda a, b: _infix(op, a, b))


def _binary_templates() -> List[Template]:
    out = [_binary_template(op) for op in BINARY_OPS]
    out.append(Template("avg(a,b)", 2, 2, lambda a, b: (a + b) / 2.0,
                        lambda a, b: _call("avg", a, b)))
    out.append(Template("gmean(a,b)", 2, 2, _gmean, lambda a, b: _call("gmean", a, b)))
    return out


def _ternary_template(op1: str, op2: str, grouped_right: bool) -> Template:
    f1, f2 = BINARY_OPS[op1], BINARY_OPS[op2]
    if grouped_right:
        return Template(f"a{op1}(b{op2}c)", 3, 2,
                        lambda a, b, c: f1(a, f2(b, c)),
                        lambda a, b, c: _infix(op1, a, _infix(op2, b, c)))
    return Template(f"(a{op1}b){op2}c", 3, 2,
                    lambda a, b, c: f2(f1(a, b), c),
                    lambda a, b, c: _infix(op2, _infix(op1, a, b), c))


def _ternary_templates() -> List[Template]:
    out: List[Template] = []
    for op1 in BINARY_OPS:
        for op2 in BINARY_OPS:
            out.append(_ternary_template(op1, op2, grouped_right=False))
            out.append(_ternary_template(op1, op2, grouped_right=True))
    out.append(Template("avg(a,b,c)", 3, 3, lambda a, b, c: (a + b + c) / 3.0,
                        lambda a, b, c: _call("avg", a, b, c)))
    out.append(Template("gmean(a,b,c)", 3, 3, _gmean, lambda a, b, c: _call("gmean", a, b, c)))
    return out


TEMPLATES: Dict[int, List[Template]] = {
    1: _unary_templates(),
    2: _binary_templates(),
    3: _ternary_templates(),
}

BY_ID: Dict[str, Template] = {t.id: t for ts in TEMPLATES.values() for t in ts}


def templates_for(arity: int) -> List[Template]:
    return TEMPLATES.get(arity, [])


def evaluate(template: Template, values: Sequence[float]) -> float:
    """
    Apply `template` to concrete operand values.

    Raises DomainError on arity mismatch, non-finite inputs, any primitive
    domain violation, or a non-finite / non-real result.
    """
    if len(values) != template.arity:
        raise DomainError(f"{template.id} expects {template.arity} operands, got {len(values)}")
    if not all(math.isfinite(v) for v in values):
        raise DomainError("non-finite operand")
    try:
        out = template.fn(*values)
    except (OverflowError, ZeroDivisionError) as e:
        raise DomainError(f"{template.id}: {e}")
    if isinstance(out, complex) or not math.isfinite(out):
        raise DomainError(f"{template.id}: result is not a finite real")
    return float(out)
