"""
eqforge/compiler.py
Default expression compiler backend

Turns an infix expression string into a callable f(x, a, b, c, d).

The string is tokenized, converted to postfix with a shunting-yard pass and
evaluated with numpy on a value stack. Nothing is handed to eval(), and
deeply nested expressions (hundreds of parentheses, which the grammar
synthesizer does produce) compile fine because neither pass recurses.

Evaluation is vectorized: pass an array for x and get an array back.
Arithmetic faults (division by zero, log of a negative, overflow) produce
inf/nan instead of raising, matching what a host page's Math-based
evaluator does.

Usage:
    f = compile_expression("tanh(1.2*(sin(x) + a))")
    f(0.5, 1.0, 1.0, 0.0, 0.0)          -> float
    f(np.linspace(-3, 3, 8), 1, 1, 0, 0) -> ndarray
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, List, Tuple, Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


class CompileError(ValueError):
    """Raised when an expression string cannot be compiled."""

    def __init__(self, message: str, position: int = -1):
        if position >= 0:
            message = f"{message} (at {position})"
        super().__init__(message)
        self.position = position


# =============================================================================
# Vocabulary
# =============================================================================

VARIABLES = ("x", "a", "b", "c", "d")

CONSTANTS: Dict[str, float] = {
    "PI": float(np.pi),
    "pi": float(np.pi),
    "E": float(np.e),
}

# name -> (numpy function, arity)
FUNCTIONS: Dict[str, Tuple[Callable, int]] = {
    "sin": (np.sin, 1),
    "cos": (np.cos, 1),
    "tan": (np.tan, 1),
    "tanh": (np.tanh, 1),
    "atan": (np.arctan, 1),
    "log": (np.log, 1),
    "exp": (np.exp, 1),
    "sqrt": (np.sqrt, 1),
    "abs": (np.abs, 1),
    "pow": (np.power, 2),
    "asin": (np.arcsin, 1),
    "acos": (np.arccos, 1),
    "sinh": (np.sinh, 1),
    "cosh": (np.cosh, 1),
    "floor": (np.floor, 1),
    "ceil": (np.ceil, 1),
    "sign": (np.sign, 1),
    "log10": (np.log10, 1),
    "log2": (np.log2, 1),
    "min": (np.minimum, 2),
    "max": (np.maximum, 2),
    "atan2": (np.arctan2, 2),
    "hypot": (np.hypot, 2),
}

BINARY: Dict[str, Callable] = {
    "+": np.add,
    "-": np.subtract,
    "*": np.multiply,
    "/": np.divide,
    "**": np.power,
}

# operator -> (precedence, right associative)
PRECEDENCE: Dict[str, Tuple[int, bool]] = {
    "+": (1, False),
    "-": (1, False),
    "*": (2, False),
    "/": (2, False),
    "**": (4, True),
}
NEGATE_PRECEDENCE = 3

# =============================================================================
# Tokenizer
# =============================================================================

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<num>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<name>[A-Za-z_][A-Za-z_0-9]*)"
    r"|(?P<op>\*\*|[-+*/(),])"
    r")"
)

NUM, NAME, OP = "num", "name", "op"


def tokenize(source: str) -> List[Tuple[str, str, int]]:
    """Split source into (kind, text, position) tokens."""
    tokens = []
    pos = 0
    end = len(source.rstrip())
    while pos < end:
        m = _TOKEN_RE.match(source, pos)
        if m is None or m.lastgroup is None:
            rest = source[pos:].lstrip()
            raise CompileError(f"Unexpected character {rest[:1]!r}", len(source) - len(rest))
        kind = m.lastgroup
        tokens.append((kind, m.group(kind), m.start(kind)))
        pos = m.end()
    return tokens


# =============================================================================
# Postfix program
# =============================================================================

# Instruction opcodes
PUSH_CONST = 0
PUSH_VAR = 1
APPLY_BINARY = 2
APPLY_NEGATE = 3
APPLY_CALL = 4

Instruction = Tuple[int, object]


def to_postfix(tokens: List[Tuple[str, str, int]]) -> List[Instruction]:
    """Shunting-yard conversion with arity and balance checks."""
    output: List[Instruction] = []
    # entries: ("op", sym, pos) | ("neg", None, pos) | ("(", fn_name or None, pos)
    stack: List[Tuple[str, object, int]] = []
    arg_counts: List[int] = []
    expect_operand = True
    pending_fn = None

    def pop_operator():
        kind, sym, _ = stack.pop()
        if kind == "neg":
            output.append((APPLY_NEGATE, None))
        else:
            output.append((APPLY_BINARY, sym))

    for i, (kind, text, pos) in enumerate(tokens):
        if pending_fn is not None and text != "(":
            raise CompileError(f"Expected '(' after {pending_fn}", pos)

        if kind == NUM:
            if not expect_operand:
                raise CompileError(f"Unexpected number {text!r}", pos)
            output.append((PUSH_CONST, np.float64(text)))
            expect_operand = False

        elif kind == NAME:
            if not expect_operand:
                raise CompileError(f"Unexpected name {text!r}", pos)
            is_call = i + 1 < len(tokens) and tokens[i + 1][1] == "("
            if is_call:
                if text not in FUNCTIONS:
                    raise CompileError(f"Unknown function {text!r}", pos)
                pending_fn = text
            elif text in VARIABLES:
                output.append((PUSH_VAR, VARIABLES.index(text)))
                expect_operand = False
            elif text in CONSTANTS:
                output.append((PUSH_CONST, np.float64(CONSTANTS[text])))
                expect_operand = False
            else:
                raise CompileError(f"Unknown name {text!r}", pos)

        elif text == "(":
            if not expect_operand:
                raise CompileError("Unexpected '('", pos)
            stack.append(("(", pending_fn, pos))
            if pending_fn is not None:
                arg_counts.append(1)
            pending_fn = None

        elif text == ",":
            if expect_operand:
                raise CompileError("Unexpected ','", pos)
            while stack and stack[-1][0] != "(":
                pop_operator()
            if not stack or stack[-1][1] is None:
                raise CompileError("',' outside a function call", pos)
            arg_counts[-1] += 1
            expect_operand = True

        elif text == ")":
            if expect_operand:
                raise CompileError("Unexpected ')'", pos)
            while stack and stack[-1][0] != "(":
                pop_operator()
            if not stack:
                raise CompileError("Unbalanced ')'", pos)
            _, fn, _ = stack.pop()
            if fn is not None:
                n_args = arg_counts.pop()
                arity = FUNCTIONS[fn][1]
                if n_args != arity:
                    raise CompileError(
                        f"{fn}() takes {arity} argument(s), got {n_args}", pos
                    )
                output.append((APPLY_CALL, fn))
            expect_operand = False

        elif expect_operand and text in ("+", "-"):
            if text == "-":
                stack.append(("neg", None, pos))

        else:
            if expect_operand:
                raise CompileError(f"Unexpected operator {text!r}", pos)
            prec, right = PRECEDENCE[text]
            while stack and stack[-1][0] in ("op", "neg"):
                top_kind, top_sym, _ = stack[-1]
                top_prec = NEGATE_PRECEDENCE if top_kind == "neg" else PRECEDENCE[top_sym][0]
                if top_prec > prec or (top_prec == prec and not right):
                    pop_operator()
                else:
                    break
            stack.append(("op", text, pos))
            expect_operand = True

    if pending_fn is not None or expect_operand:
        raise CompileError("Unexpected end of expression", tokens[-1][2] if tokens else 0)

    while stack:
        if stack[-1][0] == "(":
            raise CompileError("Unbalanced '('", stack[-1][2])
        pop_operator()

    return output


def _check_stack(program: List[Instruction]) -> None:
    depth = 0
    for op, arg in program:
        if op in (PUSH_CONST, PUSH_VAR):
            depth += 1
        elif op == APPLY_BINARY:
            depth -= 1
        elif op == APPLY_CALL:
            depth -= FUNCTIONS[arg][1] - 1
        if depth < 1:
            raise CompileError("Malformed expression")
    if depth != 1:
        raise CompileError("Malformed expression")


# =============================================================================
# Compiled expression
# =============================================================================

@dataclass(frozen=True)
class CompiledExpression:
    """A postfix program bound to the x, a, b, c, d calling convention."""
    source: str
    program: Tuple[Instruction, ...]

    def __call__(self, x: ArrayLike, a: ArrayLike = 0.0, b: ArrayLike = 0.0,
                 c: ArrayLike = 0.0, d: ArrayLike = 0.0) -> ArrayLike:
        env = tuple(np.asarray(v, dtype=float) for v in (x, a, b, c, d))
        shape = np.broadcast_shapes(*(v.shape for v in env))
        stack = []

        with np.errstate(all="ignore"):
            for op, arg in self.program:
                if op == PUSH_CONST:
                    stack.append(arg)
                elif op == PUSH_VAR:
                    stack.append(env[arg])
                elif op == APPLY_BINARY:
                    right = stack.pop()
                    stack.append(BINARY[arg](stack.pop(), right))
                elif op == APPLY_NEGATE:
                    stack.append(np.negative(stack.pop()))
                else:
                    fn, arity = FUNCTIONS[arg]
                    if arity == 1:
                        stack.append(fn(stack.pop()))
                    else:
                        right = stack.pop()
                        stack.append(fn(stack.pop(), right))

        out = stack[0]
        if shape == ():
            return float(out)
        return np.broadcast_to(out, shape).astype(float)


@lru_cache(maxsize=256)
def compile_expression(source: str) -> CompiledExpression:
    """
    Compile an expression string.

    Raises:
        CompileError: on unknown names, bad arity, unbalanced parentheses
            or any other syntax problem.
    """
    if not isinstance(source, str) or not source.strip():
        raise CompileError("Empty expression")
    program = to_postfix(tokenize(source))
    _check_stack(program)
    return CompiledExpression(source=source, program=tuple(program))
