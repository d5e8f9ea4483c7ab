"""
Tests for eqforge.compiler
Vocabulary, precedence, arity checks and error paths
"""

import math

import numpy as np
import pytest

from eqforge.compiler import CompileError, compile_expression, tokenize


def ev(expr, x=0.5, a=1.0, b=2.0, c=3.0, d=4.0):
    return compile_expression(expr)(x, a, b, c, d)


class TestArithmetic:
    """Operators and precedence."""

    def test_precedence(self):
        assert ev("1 + 2 * 3") == 7

    def test_parentheses(self):
        assert ev("(1 + 2) * 3") == 9

    def test_left_associative_subtraction(self):
        assert ev("10 - 4 - 3") == 3

    def test_left_associative_division(self):
        assert ev("8 / 4 / 2") == 1

    def test_power_right_associative(self):
        assert ev("2 ** 3 ** 2") == 512

    def test_unary_minus(self):
        assert ev("-x", x=2.0) == -2.0
        assert ev("3 * -x", x=2.0) == -6.0
        assert ev("1 - -1") == 2

    def test_unary_minus_binds_looser_than_power(self):
        assert ev("-2 ** 2") == -4

    def test_unary_plus_ignored(self):
        assert ev("+x", x=1.5) == 1.5

    def test_scientific_notation(self):
        assert ev("1e-6 * 1000000") == pytest.approx(1.0)


class TestVocabulary:
    """Functions, variables and constants."""

    def test_variables(self):
        assert ev("x + a + b + c + d", x=0.5) == pytest.approx(10.5)

    def test_constants(self):
        assert ev("PI") == pytest.approx(math.pi)
        assert ev("E") == pytest.approx(math.e)

    @pytest.mark.parametrize("expr,expected", [
        ("sin(0)", 0.0),
        ("cos(0)", 1.0),
        ("tan(0)", 0.0),
        ("tanh(0)", 0.0),
        ("atan(1)", math.pi / 4),
        ("log(E)", 1.0),
        ("exp(0)", 1.0),
        ("sqrt(9)", 3.0),
        ("abs(-2)", 2.0),
        ("pow(2, 10)", 1024.0),
        ("min(3, 4)", 3.0),
        ("max(3, 4)", 4.0),
        ("hypot(3, 4)", 5.0),
        ("floor(1.7)", 1.0),
        ("sign(-3)", -1.0),
    ])
    def test_functions(self, expr, expected):
        assert ev(expr) == pytest.approx(expected)

    def test_guarded_forms_compile(self):
        for expr in (
            "log(abs(x) + 0.000001)",
            "((x) / (abs(a) + 0.000001))",
            "pow(abs(x) + 0.000001, 0.5)",
            "exp(tanh(x) * 2.1)",
            "(atan((x) / 500000000000) * 500000000000)",
        ):
            assert math.isfinite(ev(expr))


class TestVectorized:
    """Array evaluation."""

    def test_array_in_array_out(self):
        f = compile_expression("sin(x) * a")
        x = np.linspace(-np.pi, np.pi, 16)
        y = f(x, 2.0, 0, 0, 0)
        assert isinstance(y, np.ndarray)
        assert y.shape == (16,)
        np.testing.assert_allclose(y, 2.0 * np.sin(x))

    def test_constant_broadcasts(self):
        y = compile_expression("3")(np.zeros(5))
        np.testing.assert_array_equal(y, np.full(5, 3.0))

    def test_scalar_returns_float(self):
        assert isinstance(ev("x * 2"), float)

    def test_per_point_parameters(self):
        f = compile_expression("x + a")
        y = f(np.array([1.0, 2.0]), np.array([10.0, 20.0]))
        np.testing.assert_array_equal(y, [11.0, 22.0])

    def test_faults_are_non_finite_not_errors(self):
        assert math.isinf(ev("1 / 0"))
        assert math.isnan(ev("log(-1)"))
        assert math.isnan(ev("sqrt(-1)"))


class TestDeepNesting:
    """Nesting depth has no recursion limit."""

    def test_thousand_parentheses(self):
        expr = "(" * 1000 + "x" + ")" * 1000
        assert ev(expr, x=0.25) == 0.25

    def test_deep_function_chain(self):
        expr = "x"
        for _ in range(400):
            expr = f"tanh({expr})"
        assert math.isfinite(ev(expr))


class TestErrors:
    """Syntax problems raise CompileError."""

    @pytest.mark.parametrize("expr", [
        "",
        "   ",
        "sin(",
        "sin(x",
        "x)",
        "x +",
        "* x",
        "3x",
        "foo(x)",
        "y + 1",
        "pow(x)",
        "sin(x, a)",
        "x $ 2",
        "sin x",
        "(,)",
        "x, a",
    ])
    def test_rejects(self, expr):
        with pytest.raises(CompileError):
            compile_expression(expr)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            compile_expression("sin(")

    def test_position_reported(self):
        with pytest.raises(CompileError) as exc:
            compile_expression("x + $")
        assert exc.value.position == 4


class TestTokenize:
    """Tokenizer output."""

    def test_kinds(self):
        kinds = [k for k, _, _ in tokenize("2.5*sin(x) ** a")]
        assert kinds == ["num", "op", "name", "op", "name", "op", "op", "name"]

    def test_positions(self):
        toks = tokenize("  x + 10")
        assert [p for _, _, p in toks] == [2, 4, 6]
