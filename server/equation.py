"""
Equation evaluator for Equation Poker.

Players submit equations as plain strings built from their cards. This is
the one place those strings are parsed and evaluated; submission
validation, scoring and the bot's equation search all go through it.

Grammar (standard precedence, square root binds tightest):

    expression := term (("+" | "-") term)*
    term       := factor (("*" | "/") factor)*
    factor     := NUMBER | "sqrt" NUMBER | "sqrt" "(" expression ")"

Accepted spellings: "+", "-" or "−"; "*" or "×"; "/" or "÷"; "sqrt" or "√".
Parentheses are only allowed as the operand of a square root. There is no
unary minus.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from cards import Card, NumberCard, OperationCard
from constants import MAX_EQUATION_LENGTH, MAX_SQRT_NESTING
from errors import MalformedEquation


DIGITS = "0123456789"

NUMBER = "number"
PLUS = "+"
MINUS = "-"
TIMES = "*"
DIVIDE = "/"
SQRT = "sqrt"
LPAREN = "("
RPAREN = ")"

_SINGLE_CHAR_TOKENS = {
    "+": PLUS,
    "-": MINUS,
    "−": MINUS,
    "*": TIMES,
    "×": TIMES,
    "/": DIVIDE,
    "÷": DIVIDE,
    "√": SQRT,
    "(": LPAREN,
    ")": RPAREN,
}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(expression: str) -> list[Token]:
    """
    Split an expression into tokens.

    Raises:
        MalformedEquation: On any character outside the grammar.
    """
    tokens: list[Token] = []
    i = 0
    while i < len(expression):
        ch = expression[i]
        if ch.isspace():
            i += 1
        elif ch in DIGITS:
            start = i
            while i < len(expression) and expression[i] in DIGITS:
                i += 1
            tokens.append(Token(NUMBER, expression[start:i], start))
        elif expression.startswith("sqrt", i):
            tokens.append(Token(SQRT, "sqrt", i))
            i += 4
        elif ch in _SINGLE_CHAR_TOKENS:
            tokens.append(Token(_SINGLE_CHAR_TOKENS[ch], ch, i))
            i += 1
        else:
            raise MalformedEquation(f"Unexpected character {ch!r} at position {i}")
    return tokens


class _Parser:
    """Recursive-descent evaluator over a token list."""

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def expect(self, kind: str, what: str) -> Token:
        token = self.peek()
        if token is None or token.kind != kind:
            found = f"{token.text!r}" if token else "end of equation"
            raise MalformedEquation(f"Expected {what}, found {found}")
        return self.advance()

    def parse(self) -> float:
        if not self.tokens:
            raise MalformedEquation("Equation is empty")
        value = self.expression()
        leftover = self.peek()
        if leftover is not None:
            raise MalformedEquation(f"Unexpected {leftover.text!r} at position {leftover.position}")
        return value

    def expression(self) -> float:
        value = self.term()
        while (token := self.peek()) is not None and token.kind in (PLUS, MINUS):
            self.advance()
            right = self.term()
            value = value + right if token.kind == PLUS else value - right
        return value

    def term(self) -> float:
        value = self.factor()
        while (token := self.peek()) is not None and token.kind in (TIMES, DIVIDE):
            self.advance()
            right = self.factor()
            if token.kind == TIMES:
                value = value * right
            else:
                if right == 0:
                    raise MalformedEquation("Division by zero")
                value = value / right
        return value

    def factor(self) -> float:
        token = self.peek()
        if token is None:
            raise MalformedEquation("Equation ends with a dangling operator")
        if token.kind == NUMBER:
            self.advance()
            return _literal(token)
        if token.kind == SQRT:
            self.advance()
            operand = self.sqrt_operand()
            if operand < 0:
                raise MalformedEquation("Square root of a negative number")
            return math.sqrt(operand)
        raise MalformedEquation(f"Expected a number, found {token.text!r}")

    def sqrt_operand(self) -> float:
        token = self.peek()
        if token is not None and token.kind == NUMBER:
            self.advance()
            return _literal(token)
        if token is not None and token.kind == LPAREN:
            if self.depth >= MAX_SQRT_NESTING:
                raise MalformedEquation(f"Square roots nested deeper than {MAX_SQRT_NESTING} levels")
            self.advance()
            self.depth += 1
            value = self.expression()
            self.depth -= 1
            self.expect(RPAREN, "')'")
            return value
        raise MalformedEquation("Square root must be followed by a number or parenthesized expression")


def _literal(token: Token) -> float:
    try:
        return float(int(token.text))
    except OverflowError:
        raise MalformedEquation(f"Number {token.text[:12]}... is too large") from None


def evaluate_or_raise(expression: str) -> float:
    """
    Evaluate an expression.

    Raises:
        MalformedEquation: If the expression is malformed, too long or too
            deeply nested, divides by zero or produces a non-finite result.
    """
    if len(expression) > MAX_EQUATION_LENGTH:
        raise MalformedEquation(f"Equation is longer than {MAX_EQUATION_LENGTH} characters")
    try:
        value = _Parser(tokenize(expression)).parse()
    except OverflowError:
        raise MalformedEquation("Result is too large") from None
    if not math.isfinite(value):
        raise MalformedEquation("Result is not a finite number")
    return value


def evaluate(expression: Optional[str]) -> Optional[float]:
    """
    Evaluate an expression, returning None when there is no valid result.

    Args:
        expression: The equation string, e.g. "2+3*4" or "sqrt4+5".

    Returns:
        The numeric result, or None for any malformed or non-finite equation.
    """
    if expression is None:
        return None
    try:
        return evaluate_or_raise(expression)
    except MalformedEquation:
        return None


def expression_from_cards(cards: Iterable[Card]) -> str:
    """
    Render a left-to-right arrangement of cards as an equation string.

    A square-root card applies to the card placed right after it, the way
    the equation builder lays cards out.
    """
    parts: list[str] = []
    for card in cards:
        if isinstance(card, NumberCard):
            parts.append(str(card.value))
        elif isinstance(card, OperationCard):
            parts.append(card.operation.symbol)
    return "".join(parts)


def distance_to_target(value: Optional[float], target: int) -> Optional[float]:
    """Absolute distance from a target, or None without a valid result."""
    if value is None:
        return None
    return abs(value - target)

