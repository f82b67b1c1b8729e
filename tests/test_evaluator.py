import math
import pytest

from tss.evaluator import BY_ID, DomainError, evaluate, fmt_number, templates_for


def test_template_menu_sizes():
    assert len(templates_for(1)) == 8
    assert len(templates_for(2)) == 8
    # 6 x 6 operator pairs in two groupings, plus average and geometric mean
    assert len(templates_for(3)) == 74
    assert templates_for(4) == []


def test_unary_templates():
    assert evaluate(BY_ID["sqrt(a)"], (16.0,)) == 4.0
    assert evaluate(BY_ID["abs(a)"], (-3.0,)) == 3.0
    assert evaluate(BY_ID["a^3"], (3.0,)) == 27.0
    assert evaluate(BY_ID["factorial(a)"], (5.0,)) == 120.0
    assert evaluate(BY_ID["ceil(a)"], (2.1,)) == 3.0
    assert evaluate(BY_ID["floor(a)"], (2.9,)) == 2.0


@pytest.mark.parametrize("tid,values", [
    ("sqrt(a)", (-4.0,)),
    ("factorial(a)", (13.0,)),
    ("factorial(a)", (2.5,)),
    ("factorial(a)", (-1.0,)),
    ("a/b", (1.0, 0.0)),
    ("a%b", (1.0, 0.0)),
    ("a^b", (-8.0, 0.5)),
    ("a^b", (10.0, 400.0)),
    ("gmean(a,b)", (-2.0, 8.0)),
    ("gmean(a,b,c)", (2.0, -1.0, 4.0)),
    ("(a+b)/c", (1.0, 2.0, 0.0)),
])
def test_domain_errors(tid, values):
    with pytest.raises(DomainError):
        evaluate(BY_ID[tid], values)


def test_arity_mismatch_and_non_finite():
    with pytest.raises(DomainError):
        evaluate(BY_ID["a+b"], (1.0,))
    with pytest.raises(DomainError):
        evaluate(BY_ID["a"], (math.inf,))


def test_means_and_modulo():
    assert evaluate(BY_ID["avg(a,b)"], (2.0, 8.0)) == 5.0
    assert evaluate(BY_ID["gmean(a,b)"], (2.0, 8.0)) == 4.0
    assert evaluate(BY_ID["gmean(a,b,c)"], (2.0, 4.0, 8.0)) == pytest.approx(4.0)
    assert evaluate(BY_ID["avg(a,b,c)"], (1.0, 2.0, 6.0)) == 3.0
    # floor modulo: result takes the divisor's sign
    assert evaluate(BY_ID["a%b"], (-7.0, 3.0)) == 2.0


def test_grouping_orders_differ():
    assert evaluate(BY_ID["(a-b)-c"], (10.0, 4.0, 1.0)) == 5.0
    assert evaluate(BY_ID["a-(b-c)"], (10.0, 4.0, 1.0)) == 7.0


def test_rendering_uses_minimal_parentheses():
    assert BY_ID["(a*b)+c"].render((121.0, 6.0, 51.0)) == "121 * 6 + 51"
    assert BY_ID["a*(b+c)"].render((2.0, 3.0, 4.0)) == "2 * (3 + 4)"
    assert BY_ID["a-(b-c)"].render((10.0, 4.0, 1.0)) == "10 - (4 - 1)"
    assert BY_ID["a+(b+c)"].render((1.0, 2.0, 3.0)) == "1 + 2 + 3"
    assert BY_ID["(a+b)*c"].render((1.0, 2.0, 3.0)) == "(1 + 2) * 3"
    assert BY_ID["(a^b)^c"].render((2.0, 3.0, 4.0)) == "(2 ^ 3) ^ 4"
    assert BY_ID["a^2"].render((-3.0,)) == "(-3)^2"
    assert BY_ID["gmean(a,b)"].render((2.0, 8.0)) == "gmean(2, 8)"


def test_fmt_number():
    assert fmt_number(55.0) == "55"
    assert fmt_number(2.5) == "2.5"
    assert fmt_number(-4.0) == "(-4)"
