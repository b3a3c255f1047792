"""
Expression parsing for f(x, y).

Text is tokenized, parsed by recursive descent into a small immutable AST and
then validated against the fixed sets of variables and functions. Every
failure is a ParseError subclass carrying the character offset of the
offending input so the UI can highlight it.

Precedence, lowest to highest::

    + -          (binary, left-assoc)
    * / %        (binary, left-assoc; also implicit multiplication)
    + -          (unary prefix)
    ^            (right-assoc; ** is accepted as an alias)
"""
import enum
import math
import re
from collections import namedtuple
from dataclasses import dataclass, field

from .errors import (
    ArityMismatch,
    EmptyExpression,
    ParseError,
    UnexpectedToken,
    UnknownFunction,
    UnknownVariable,
    UnmatchedParen,
)


# --- Vocabulary ---
class Function(enum.Enum):
    SIN = ("sin", 1)
    COS = ("cos", 1)
    TAN = ("tan", 1)
    ASIN = ("asin", 1)
    ACOS = ("acos", 1)
    ATAN = ("atan", 1)
    ATAN2 = ("atan2", 2)
    SINH = ("sinh", 1)
    COSH = ("cosh", 1)
    TANH = ("tanh", 1)
    EXP = ("exp", 1)
    LN = ("ln", 1)
    LOG = ("log", 1)
    LOG10 = ("log10", 1)
    ABS = ("abs", 1)
    SQRT = ("sqrt", 1)

    def __init__(self, symbol, arity):
        self.symbol = symbol
        self.arity = arity


FUNCTIONS = {f.symbol: f for f in Function}
VARIABLES = ("x", "y")
CONSTANTS = {"pi": math.pi, "π": math.pi, "e": math.e}
# Longest first so "sinh" wins over "sin" and "exp" over "e"
_KNOWN_NAMES = sorted(set(FUNCTIONS) | set(VARIABLES) | set(CONSTANTS), key=len, reverse=True)


# --- Tokens ---
NUMBER, IDENT, OP, LPAREN, RPAREN, COMMA, END = "number", "identifier", "operator", "(", ")", ",", "end"
OPERATORS = "+-*/^%"

Token = namedtuple("Token", "kind text pos value")

_NUMBER_RE = re.compile(r"(?:[0-9]+\.[0-9]*|\.[0-9]+|[0-9]+)(?:[eE][+-]?[0-9]+)?")
_IDENT_RE = re.compile(r"[^\W\d]\w*")


def _split_identifier(run):
    """Split an identifier run like 'xy' or 'pix' into known names, greedily.

    Runs that are known names, or that cannot be fully covered by known names,
    are returned whole.
    """
    if run in _KNOWN_NAMES: return [run]
    parts, i = [], 0
    while i < len(run):
        for name in _KNOWN_NAMES:
            if run.startswith(name, i):
                parts.append(name); i += len(name)
                break
        else:
            return [run]
    return parts


def tokenize(text):
    tokens = []
    pos, n = 0, len(text)
    while pos < n:
        ch = text[pos]
        if ch.isspace():
            pos += 1; continue
        match = _NUMBER_RE.match(text, pos)
        if match:
            tokens.append(Token(NUMBER, match.group(), pos, float(match.group())))
            pos = match.end(); continue
        match = _IDENT_RE.match(text, pos)
        if match:
            offset = pos
            for part in _split_identifier(match.group()):
                tokens.append(Token(IDENT, part, offset, None))
                offset += len(part)
            pos = match.end(); continue
        if text.startswith("**", pos):
            tokens.append(Token(OP, "^", pos, None))
            pos += 2; continue
        if ch in OPERATORS: tokens.append(Token(OP, ch, pos, None))
        elif ch == "(": tokens.append(Token(LPAREN, ch, pos, None))
        elif ch == ")": tokens.append(Token(RPAREN, ch, pos, None))
        elif ch == ",": tokens.append(Token(COMMA, ch, pos, None))
        else: raise UnexpectedToken(f"Unexpected character '{ch}'", pos)
        pos += 1
    tokens.append(Token(END, "", n, None))
    return tokens


# --- AST ---
# Offsets are excluded from equality so identical text always yields equal trees.
@dataclass(frozen=True)
class Constant:
    value: float


@dataclass(frozen=True)
class Variable:
    name: str
    offset: int = field(default=0, compare=False)


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: object


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: object
    right: object


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple
    offset: int = field(default=0, compare=False)

    @property
    def function(self):
        return FUNCTIONS.get(self.name)


@dataclass(frozen=True)
class CompiledExpression:
    """A validated tree plus the free variables it references (a subset of x, y)."""
    tree: object
    variables: frozenset
    text: str = field(default="", compare=False)

    def __str__(self):
        return to_source(self.tree)


def walk(node):
    """Pre-order, left-to-right traversal."""
    yield node
    if isinstance(node, UnaryOp):
        yield from walk(node.operand)
    elif isinstance(node, BinaryOp):
        yield from walk(node.left)
        yield from walk(node.right)
    elif isinstance(node, Call):
        for arg in node.args:
            yield from walk(arg)


# --- Parser ---
class _Parser:
    def __init__(self, tokens):
        self.tokens = tokens
        self.index = 0
        self.open_parens = []

    def peek(self):
        return self.tokens[self.index]

    def advance(self):
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def at_operator(self, symbols):
        tok = self.peek()
        return tok.kind == OP and tok.text in symbols

    def parse(self):
        if self.peek().kind == END: raise EmptyExpression("Expression is empty", 0)
        node = self.parse_sum()
        tok = self.peek()
        if tok.kind == RPAREN: raise UnmatchedParen("Unmatched ')'", tok.pos)
        if tok.kind != END: raise UnexpectedToken(f"Unexpected '{tok.text}'", tok.pos)
        return node

    def parse_sum(self):
        node = self.parse_product()
        while self.at_operator("+-"):
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_product())
        return node

    def parse_product(self):
        node = self.parse_unary()
        while True:
            tok = self.peek()
            if tok.kind == OP and tok.text in "*/%":
                self.advance()
                node = BinaryOp(tok.text, node, self.parse_unary())
            elif tok.kind in (IDENT, LPAREN):
                # An operand just ended, so adjacency means multiplication: 2x, x y, (x)(y)
                node = BinaryOp("*", node, self.parse_unary())
            else:
                return node

    def parse_unary(self):
        if self.at_operator("+-"):
            op = self.advance().text
            operand = self.parse_unary()
            return UnaryOp("-", operand) if op == "-" else operand
        return self.parse_power()

    def parse_power(self):
        base = self.parse_primary()
        if self.at_operator("^"):
            self.advance()
            return BinaryOp("^", base, self.parse_unary())
        return base

    def parse_primary(self):
        tok = self.peek()
        if tok.kind == NUMBER:
            self.advance()
            return Constant(tok.value)
        if tok.kind == LPAREN:
            self.advance()
            self.open_parens.append(tok.pos)
            node = self.parse_sum()
            self.expect_close(tok)
            return node
        if tok.kind == IDENT:
            self.advance()
            return self.parse_identifier(tok)
        if tok.kind == END:
            if self.open_parens:
                pos = self.open_parens[-1]
                raise UnmatchedParen(f"Missing ')' for '(' at position {pos}", pos)
            raise UnexpectedToken("Unexpected end of expression", tok.pos)
        if tok.kind == RPAREN:
            if not self.open_parens: raise UnmatchedParen("Unmatched ')'", tok.pos)
            raise UnexpectedToken("Expected a value before ')'", tok.pos)
        raise UnexpectedToken(f"Unexpected '{tok.text}'", tok.pos)

    def parse_identifier(self, tok):
        name = tok.text
        if name in CONSTANTS: return Constant(CONSTANTS[name])
        if name in VARIABLES: return Variable(name, tok.pos)
        if self.peek().kind == LPAREN: return self.parse_call(tok)
        if name in FUNCTIONS:
            raise UnexpectedToken(f"Function '{name}' must be followed by '('", self.peek().pos)
        # Left for validation to reject with the identifier's offset
        return Variable(name, tok.pos)

    def parse_call(self, name_tok):
        open_tok = self.advance()
        self.open_parens.append(open_tok.pos)
        args = []
        if self.peek().kind != RPAREN:
            args.append(self.parse_sum())
            while self.peek().kind == COMMA:
                self.advance()
                args.append(self.parse_sum())
        self.expect_close(open_tok)
        func = FUNCTIONS.get(name_tok.text)
        if func is not None and len(args) != func.arity:
            plural = "argument" if func.arity == 1 else "arguments"
            raise ArityMismatch(f"'{func.symbol}' takes {func.arity} {plural}, got {len(args)}", name_tok.pos)
        return Call(name_tok.text, tuple(args), name_tok.pos)

    def expect_close(self, open_tok):
        tok = self.peek()
        if tok.kind == RPAREN:
            self.advance()
            self.open_parens.pop()
            return
        if tok.kind == END: raise UnmatchedParen(f"Missing ')' for '(' at position {open_tok.pos}", open_tok.pos)
        raise UnexpectedToken(f"Expected ')' but found '{tok.text}'", tok.pos)


def validate(tree):
    """Reject unknown variables and functions; return the free variables used."""
    variables = set()
    for node in walk(tree):
        if isinstance(node, Variable):
            if node.name not in VARIABLES:
                raise UnknownVariable(f"Unknown variable '{node.name}' (only x and y are allowed)", node.offset)
            variables.add(node.name)
        elif isinstance(node, Call) and node.name not in FUNCTIONS:
            raise UnknownFunction(f"Unknown function '{node.name}'", node.offset)
    return frozenset(variables)


def parse(text):
    """Parse and validate text into a CompiledExpression. Raises ParseError."""
    if not isinstance(text, str):
        raise TypeError(f"Expression must be a string, not {type(text).__name__}")
    tokens = tokenize(text)
    try:
        tree = _Parser(tokens).parse()
        variables = validate(tree)
    except RecursionError:
        raise UnexpectedToken("Expression is nested too deeply", 0) from None
    return CompiledExpression(tree, variables, text)


def try_parse(text):
    """Result-style wrapper: (compiled, None) on success, (None, error) on failure."""
    try:
        return parse(text), None
    except ParseError as err:
        return None, err


# --- Rendering back to text ---
_PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2, "%": 2, "^": 4}
_UNARY_PRECEDENCE = 3
_ATOM_PRECEDENCE = 5


def _precedence(node):
    if isinstance(node, BinaryOp): return _PRECEDENCE[node.op]
    if isinstance(node, UnaryOp): return _UNARY_PRECEDENCE
    if isinstance(node, Constant) and node.value < 0: return _UNARY_PRECEDENCE
    return _ATOM_PRECEDENCE


def _wrap(node, needs_parens):
    text = to_source(node)
    return f"({text})" if needs_parens else text


def to_source(node):
    """Canonical infix text for a tree, with only the parentheses it needs."""
    if isinstance(node, Constant):
        return repr(float(node.value))
    if isinstance(node, Variable):
        return node.name
    if isinstance(node, UnaryOp):
        return "-" + _wrap(node.operand, _precedence(node.operand) < _UNARY_PRECEDENCE)
    if isinstance(node, BinaryOp):
        prec = _PRECEDENCE[node.op]
        if node.op == "^":
            left = _wrap(node.left, _precedence(node.left) < _ATOM_PRECEDENCE)
            right = _wrap(node.right, _precedence(node.right) < _UNARY_PRECEDENCE)
            return f"{left}^{right}"
        left = _wrap(node.left, _precedence(node.left) < prec)
        right = _wrap(node.right, _precedence(node.right) <= prec)
        return f"{left} {node.op} {right}"
    if isinstance(node, Call):
        return f"{node.name}({', '.join(to_source(arg) for arg in node.args)})"
    raise TypeError(f"Unknown node type: {type(node).__name__}")
