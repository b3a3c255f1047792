"""Exception types surfaced to the UI."""


class GrapherError(Exception):
    pass


# --- Parse Errors ---
class ParseError(GrapherError):
    kind = "parse_error"

    def __init__(self, message, offset=0):
        super().__init__(message)
        self.message = message
        self.offset = offset

    def __str__(self):
        return f"{self.message} (at position {self.offset})"

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r}, offset={self.offset})"


class UnexpectedToken(ParseError):
    kind = "unexpected_token"


class UnmatchedParen(ParseError):
    kind = "unmatched_paren"


class EmptyExpression(ParseError):
    kind = "empty_expression"


class UnknownVariable(ParseError):
    kind = "unknown_variable"


class UnknownFunction(ParseError):
    kind = "unknown_function"


class ArityMismatch(ParseError):
    kind = "arity_mismatch"


# --- Configuration Errors ---
class ConfigError(GrapherError, ValueError):
    """Resolution, zoom, domain or clamp value the pipeline cannot use."""
