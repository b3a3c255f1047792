"""
Evaluation of a CompiledExpression.

Domain errors never raise: sqrt(-1) is NaN, 1/0 is inf, ln(0) is -inf. The
sampler relies on those values reaching it unchanged to build its invalid mask.
"""
import logging
import math
import threading

import asteval
import numpy as np

from .expression import BinaryOp, Call, CompiledExpression, Constant, Function, UnaryOp, Variable

logger = logging.getLogger(__name__)

_NAN = np.float64(np.nan)

_UNARY = {"-": np.negative}
_BINARY = {
    "+": np.add, "-": np.subtract, "*": np.multiply,
    "/": np.divide, "%": np.fmod, "^": np.power,
}
_IMPLEMENTATIONS = {
    Function.SIN: np.sin, Function.COS: np.cos, Function.TAN: np.tan,
    Function.ASIN: np.arcsin, Function.ACOS: np.arccos, Function.ATAN: np.arctan,
    Function.ATAN2: np.arctan2,
    Function.SINH: np.sinh, Function.COSH: np.cosh, Function.TANH: np.tanh,
    Function.EXP: np.exp, Function.LN: np.log, Function.LOG: np.log,
    Function.LOG10: np.log10, Function.ABS: np.abs, Function.SQRT: np.sqrt,
}
assert set(_IMPLEMENTATIONS) == set(Function), "every Function needs an implementation"


def _tree(expr):
    return expr.tree if isinstance(expr, CompiledExpression) else expr


# --- Scalar Evaluation ---
def _walk(node, env):
    if isinstance(node, Constant): return np.float64(node.value)
    if isinstance(node, Variable): return env.get(node.name, _NAN)
    if isinstance(node, UnaryOp): return _UNARY[node.op](_walk(node.operand, env))
    if isinstance(node, BinaryOp): return _BINARY[node.op](_walk(node.left, env), _walk(node.right, env))
    if isinstance(node, Call): return _IMPLEMENTATIONS[node.function](*[_walk(arg, env) for arg in node.args])
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def evaluate(expr, bindings=None):
    """Evaluate at one point. Unbound variables read as NaN."""
    env = {name: np.float64(value) for name, value in (bindings or {}).items()}
    with np.errstate(all="ignore"):
        return float(_walk(_tree(expr), env))


# --- Batched Evaluation ---
_OP_SYMBOLS = {"+": "op_add", "-": "op_sub", "*": "op_mul", "/": "op_div", "%": "op_fmod", "^": "op_pow"}


def _leaf_source(tree):
    if isinstance(tree, Constant):
        value = float(tree.value)
        if math.isnan(value): return "nan"
        if math.isinf(value): return "inf" if value > 0 else "op_neg(inf)"
        return repr(value)
    if isinstance(tree, Variable):
        return tree.name
    return None


def to_grid_source(tree):
    """Render a tree as ufunc calls for asteval, one assignment per operation.

    Operators become calls so asteval's own arithmetic guards (ZeroDivisionError
    on plain floats, its exponent limit) never fire; numpy decides instead.
    Each intermediate lands in its own temporary (t0, t1, ...) so the source
    stays flat however deeply the expression nests; the last line names the
    result.
    """
    lines = []

    def emit(node):
        leaf = _leaf_source(node)
        if leaf is not None: return leaf
        if isinstance(node, UnaryOp):
            call = f"op_neg({emit(node.operand)})"
        elif isinstance(node, BinaryOp):
            call = f"{_OP_SYMBOLS[node.op]}({emit(node.left)}, {emit(node.right)})"
        elif isinstance(node, Call):
            call = f"fn_{node.name}({', '.join(emit(arg) for arg in node.args)})"
        else:
            raise TypeError(f"Unknown node type: {type(node).__name__}")
        name = f"t{len(lines)}"
        lines.append(f"{name} = {call}")
        return name

    lines.append(emit(tree))
    return "\n".join(lines)


def _make_interpreter():
    aeval = asteval.Interpreter()
    aeval.symtable['inf'] = np.inf; aeval.symtable['nan'] = np.nan
    aeval.symtable['op_neg'] = np.negative
    aeval.symtable['op_add'] = np.add; aeval.symtable['op_sub'] = np.subtract
    aeval.symtable['op_mul'] = np.multiply; aeval.symtable['op_div'] = np.divide
    aeval.symtable['op_fmod'] = np.fmod; aeval.symtable['op_pow'] = np.power
    for func, impl in _IMPLEMENTATIONS.items():
        aeval.symtable[f"fn_{func.symbol}"] = impl
    return aeval


def _evaluate_rows(source, xs, ys):
    shape = (ys.size, xs.size)
    x_grid, y_grid = np.meshgrid(xs, ys)
    # One interpreter per call; asteval interpreters are not thread-safe
    aeval = _make_interpreter()
    aeval.symtable.update({'x': x_grid, 'y': y_grid})
    with np.errstate(all="ignore"):
        result = aeval.eval(source, show_errors=False)
    if aeval.error:
        logger.warning("Grid evaluation of '%s' failed: %s", source, aeval.error_msg.strip())
        return np.full(shape, np.nan)
    # Constant expressions come back as scalars
    return np.broadcast_to(np.asarray(result, dtype=np.float64), shape).copy()


def evaluate_grid(expr, xs, ys, workers=None):
    """Evaluate over the grid xs × ys; returns heights with shape (len(ys), len(xs)).

    Row i holds y = ys[i]. With workers > 1 the rows are split into disjoint
    slices, each evaluated on its own thread and written into its own slice of
    the output.
    """
    xs = np.asarray(xs, dtype=np.float64).ravel()
    ys = np.asarray(ys, dtype=np.float64).ravel()
    source = to_grid_source(_tree(expr))
    if not workers or workers <= 1 or ys.size < 2:
        return _evaluate_rows(source, xs, ys)

    heights = np.empty((ys.size, xs.size), dtype=np.float64)

    def work(rows):
        heights[rows] = _evaluate_rows(source, xs, ys[rows])

    bounds = np.linspace(0, ys.size, min(workers, ys.size) + 1).astype(int)
    threads = [threading.Thread(target=work, args=(slice(start, stop),), daemon=True)
               for start, stop in zip(bounds[:-1], bounds[1:]) if stop > start]
    for thread in threads: thread.start()
    for thread in threads: thread.join()
    return heights
