import pytest

from tss.evaluator import DomainError, evaluate, templates_for
from tss.verify import check_equation, equation_value


@pytest.mark.parametrize("text,expected", [
    ("121 * 6 + 51", 777),
    ("1 + 55", 56),
    ("(-3)^2", 9),
    ("factorial(5)", 120),
    ("sqrt(16)", 4),
    ("gmean(2, 8)", 4),
    ("avg(1, 2, 6)", 3),
    ("ceil(2.1)", 3),
    ("(-7) % 3", 2),
    ("(2 ^ 3) ^ 2", 64),
])
def test_rendered_text_evaluates(text, expected):
    assert check_equation(text, expected)


def test_mismatch_and_garbage():
    assert not check_equation("1 + 54", 56)
    assert equation_value("1 / 0") is None
    assert equation_value("not an equation(") is None
    assert not check_equation("import os", 1)


@pytest.mark.parametrize("values", [(2.0, 3.0, 4.0), (-2.0, 5.0, 3.0), (1.5, 4.0, 2.0)])
def test_every_template_renders_to_its_own_value(values):
    for arity in (1, 2, 3):
        for t in templates_for(arity):
            args = values[:arity]
            try:
                v = evaluate(t, args)
            except DomainError:
                continue
            text = t.render(args)
            assert check_equation(text, v), (t.id, text, v, equation_value(text))
