"""
Expression parser for DerivSolver.

Turns an infix string such as ``"x^2 + 3x - sin(2x)"`` into an
expression tree in three passes:

  1. normalisation + implicit multiplication (free-form input only):
     ``2x`` → ``2*x``, ``3(x+1)`` → ``3*(x+1)``, ``x²`` → ``x^(2)``;
  2. tokenization into NUMBER / VARIABLE / FUNCTION / OPERATOR /
     LEFT_PAREN / RIGHT_PAREN tokens;
  3. recursive descent with the precedence ladder
     ``additive → multiplicative → power → unary → primary``.

Positions reported in ``ParseError`` refer to the text after pass 1.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from derivative.errors import ParseError
from derivative.expression import (
    Binary, BinaryOp, Constant, Expr, FUNCTION_NAMES, Unary, UnaryOp, Variable,
)

logger = logging.getLogger(__name__)

_FUNCTIONS = frozenset(FUNCTION_NAMES)


class TokenType(Enum):
    NUMBER = "NUMBER"
    VARIABLE = "VARIABLE"
    FUNCTION = "FUNCTION"
    OPERATOR = "OPERATOR"
    LEFT_PAREN = "LEFT_PAREN"
    RIGHT_PAREN = "RIGHT_PAREN"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    position: int


# ── Unicode normalisation ───────────────────────────────────────────────

_SUPERSCRIPT_DIGITS = "⁰¹²³⁴⁵⁶⁷⁸⁹"
_FROM_SUPERSCRIPT = str.maketrans(_SUPERSCRIPT_DIGITS + "⁺⁻·", "0123456789+-.")
# Optional sign, digits, optional "·digits" decimal part.  A lone '·' is
# a multiplication dot, not part of an exponent.
_SUPERSCRIPT_RUN = re.compile(
    "[⁺⁻]?[" + _SUPERSCRIPT_DIGITS + "]+(?:·[" + _SUPERSCRIPT_DIGITS + "]+)?"
)


def normalize_unicode(text: str) -> str:
    """Replace display glyphs with their ASCII operator equivalents.

    Accepts the formatter's own text output, so ``2x² × sin(x)`` reads
    back as ``2x^(2) * sin(x)``.
    """
    s = _SUPERSCRIPT_RUN.sub(
        lambda m: "^(" + m.group(0).translate(_FROM_SUPERSCRIPT) + ")", text)
    s = s.replace('×', '*').replace('·', '*').replace('⋅', '*')
    s = s.replace('÷', '/').replace('−', '-')
    s = s.replace('√', 'sqrt')
    s = re.sub(r'(?<![a-zA-Z])π', 'pi', s)
    s = s.replace('[', '(').replace(']', ')')
    return s


# ── Implicit multiplication ─────────────────────────────────────────────

def _split_name(word: str, before_paren: bool) -> list[tuple[str, str]]:
    """Split a letter run into ``(kind, text)`` pieces.

    A run that is itself a function name stays whole.  A run directly
    followed by '(' whose tail is a function name (``xsin``) is split
    into a variable and the function so the call is kept intact.
    """
    if word.lower() in _FUNCTIONS:
        return [("function", word)]
    if before_paren:
        for k in range(1, len(word)):
            tail = word[k:]
            if tail.lower() in _FUNCTIONS:
                return [("name", word[:k]), ("function", tail)]
    return [("name", word)]


def insert_implicit_multiplication(text: str) -> str:
    """Insert an explicit ``*`` wherever concatenation implies a product.

    ``2x`` → ``2*x``, ``2sin(x)`` → ``2*sin(x)``, ``3(x+1)`` →
    ``3*(x+1)``, ``(x+1)(x-1)`` → ``(x+1)*(x-1)``, ``(x+1)2`` →
    ``(x+1)*2``.  Function calls such as ``sin(x)`` are left alone.
    """
    out = []
    prev = None          # kind of the last significant chunk
    i = 0
    n = len(text)

    def needs_star(kind: str) -> bool:
        if prev == "close":
            return kind in ("number", "name", "function", "open")
        if prev == "number":
            return kind in ("name", "function", "open")
        if prev == "name":
            return kind in ("function", "open")
        return False

    while i < n:
        ch = text[i]
        if ch.isspace():
            out.append(ch)
            i += 1
            continue
        if ch.isdigit() or ch == '.':
            j = i
            while j < n and (text[j].isdigit() or text[j] == '.'):
                j += 1
            if needs_star("number"):
                out.append('*')
            out.append(text[i:j])
            prev = "number"
            i = j
            continue
        if ch.isascii() and ch.isalpha():
            j = i
            while j < n and text[j].isascii() and text[j].isalnum():
                j += 1
            k = j
            while k < n and text[k].isspace():
                k += 1
            before_paren = k < n and text[k] == '('
            for kind, piece in _split_name(text[i:j], before_paren):
                if needs_star(kind):
                    out.append('*')
                out.append(piece)
                prev = kind
            i = j
            continue
        if ch == '(':
            if needs_star("open"):
                out.append('*')
            prev = "open"
        elif ch == ')':
            prev = "close"
        else:
            prev = "operator"
        out.append(ch)
        i += 1
    return ''.join(out)


# ── Tokenizer ───────────────────────────────────────────────────────────

def tokenize(text: str) -> list[Token]:
    """Single left-to-right scan of *text*; always ends with an EOF token."""
    tokens = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
        elif ch.isdigit() or ch == '.':
            start = i
            while i < n and (text[i].isdigit() or text[i] == '.'):
                i += 1
            number = text[start:i]
            if number.count('.') > 1 or number == '.':
                raise ParseError(
                    f"Malformed number '{number}' at position {start}", start)
            tokens.append(Token(TokenType.NUMBER, number, start))
        elif ch.isascii() and ch.isalpha():
            start = i
            while i < n and text[i].isascii() and text[i].isalnum():
                i += 1
            word = text[start:i]
            if word.lower() in _FUNCTIONS:
                tokens.append(Token(TokenType.FUNCTION, word, start))
            else:
                tokens.append(Token(TokenType.VARIABLE, word, start))
        elif ch in "+-*/^":
            tokens.append(Token(TokenType.OPERATOR, ch, i))
            i += 1
        elif ch == '(':
            tokens.append(Token(TokenType.LEFT_PAREN, ch, i))
            i += 1
        elif ch == ')':
            tokens.append(Token(TokenType.RIGHT_PAREN, ch, i))
            i += 1
        else:
            raise ParseError(f"Unexpected character '{ch}' at position {i}", i)
    tokens.append(Token(TokenType.EOF, "", n))
    return tokens


# ── Recursive descent ───────────────────────────────────────────────────

class _TokenStream:
    """Cursor over a token list for one parse call."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.type is not TokenType.EOF:
            self.index += 1
        return token

    def at_operator(self, *symbols: str) -> bool:
        tok = self.current
        return tok.type is TokenType.OPERATOR and tok.value in symbols

    def expect(self, kind: TokenType, what: str) -> Token:
        tok = self.current
        if tok.type is not kind:
            raise ParseError(f"Expected {what} but found {_describe(tok)}",
                             tok.position)
        return self.advance()


def _describe(token: Token) -> str:
    if token.type is TokenType.EOF:
        return f"end of input at position {token.position}"
    return f"'{token.value}' at position {token.position}"


class Parser:
    """Infix expression parser.

    *implicit_multiplication* turns on the normalisation and implicit
    ``*`` insertion pass; switch it off for machine-generated strings.
    """

    def __init__(self, implicit_multiplication: bool = True):
        self.implicit_multiplication = implicit_multiplication

    def preprocess(self, text: str) -> str:
        if not self.implicit_multiplication:
            return text
        return insert_implicit_multiplication(normalize_unicode(text))

    def parse(self, text: str) -> Expr:
        if text is None or not text.strip():
            raise ParseError("Empty expression", 0)
        source = self.preprocess(text)
        stream = _TokenStream(tokenize(source))
        try:
            expr = self._additive(stream)
        except RecursionError:
            raise ParseError("Expression is nested too deeply", 0) from None
        if stream.current.type is not TokenType.EOF:
            tok = stream.current
            raise ParseError(f"Unexpected token {_describe(tok)}", tok.position)
        logger.debug("parsed %r as %s", text, expr)
        return expr

    # additive = multiplicative (('+' | '-') multiplicative)*
    def _additive(self, stream: _TokenStream) -> Expr:
        left = self._multiplicative(stream)
        while stream.at_operator("+", "-"):
            op = BinaryOp.from_symbol(stream.advance().value)
            right = self._multiplicative(stream)
            left = Binary(left, op, right)
        return left

    # multiplicative = power (('*' | '/') power)*
    def _multiplicative(self, stream: _TokenStream) -> Expr:
        left = self._power(stream)
        while stream.at_operator("*", "/"):
            op = BinaryOp.from_symbol(stream.advance().value)
            right = self._power(stream)
            left = Binary(left, op, right)
        return left

    # power = unary ('^' power)?      right-associative: 2^3^4 = 2^(3^4)
    def _power(self, stream: _TokenStream) -> Expr:
        base = self._unary(stream)
        if stream.at_operator("^"):
            stream.advance()
            exponent = self._power(stream)
            return Binary(base, BinaryOp.POWER, exponent)
        return base

    # unary = ('-' | '+') unary | FUNCTION '(' additive ')' | primary
    def _unary(self, stream: _TokenStream) -> Expr:
        if stream.at_operator("-"):
            stream.advance()
            return Unary(UnaryOp.NEGATE, self._unary(stream))
        if stream.at_operator("+"):
            stream.advance()
            return self._unary(stream)
        tok = stream.current
        if tok.type is TokenType.FUNCTION:
            stream.advance()
            op = UnaryOp.from_symbol(tok.value.lower())
            if op is None:
                raise ParseError(f"Unknown function '{tok.value}'", tok.position)
            stream.expect(TokenType.LEFT_PAREN, f"'(' after function {tok.value}")
            argument = self._additive(stream)
            stream.expect(TokenType.RIGHT_PAREN, "')' after function argument")
            return Unary(op, argument)
        return self._primary(stream)

    # primary = NUMBER | VARIABLE | '(' additive ')'
    def _primary(self, stream: _TokenStream) -> Expr:
        tok = stream.current
        if tok.type is TokenType.NUMBER:
            stream.advance()
            try:
                return Constant(float(tok.value))
            except ValueError:
                raise ParseError(f"Invalid number '{tok.value}'", tok.position)
        if tok.type is TokenType.VARIABLE:
            stream.advance()
            return Variable(tok.value)
        if tok.type is TokenType.LEFT_PAREN:
            stream.advance()
            inner = self._additive(stream)
            stream.expect(TokenType.RIGHT_PAREN, "')'")
            return inner
        raise ParseError(f"Unexpected token {_describe(tok)}", tok.position)


def parse(text: str, implicit_multiplication: bool = True) -> Expr:
    """Parse *text* into an expression tree (module-level shortcut)."""
    return Parser(implicit_multiplication).parse(text)
