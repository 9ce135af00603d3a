"""
Tag expressions used to select test cases.

Grammar (lowest to highest precedence):

    expr    := or
    or      := and (('|' | ',') and)*
    and     := unary ('&' unary)*
    unary   := '!' unary | primary
    primary := '(' expr ')' | 'any()' | 'none()' | TAG

`any()` matches cases with at least one tag, `none()` cases without tags.
An empty expression matches everything.
"""

from __future__ import annotations

import re
from typing import Callable, FrozenSet

from conformance.runner.exceptions import HarnessError

TagMatcher = Callable[[FrozenSet[str]], bool]

_TOKEN_RE = re.compile(r"\s*(any\(\)|none\(\)|[|&!(),]|[A-Za-z0-9_.\-]+)")


def _tokenize(expression: str) -> list[str]:
    tokens: list[str] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise HarnessError(f"Invalid tag expression at {pos}: {expression!r}")
        tokens.append(match.group(1))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.pos = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> str:
        token = self.peek()
        if token is None:
            raise HarnessError(f"Unexpected end of tag expression: {self.expression!r}")
        self.pos += 1
        return token

    def parse(self) -> TagMatcher:
        matcher = self.parse_or()
        if self.peek() is not None:
            raise HarnessError(f"Unexpected '{self.peek()}' in tag expression: {self.expression!r}")
        return matcher

    def parse_or(self) -> TagMatcher:
        operands = [self.parse_and()]
        while self.peek() in ("|", ","):
            self.take()
            operands.append(self.parse_and())
        if len(operands) == 1:
            return operands[0]
        return lambda tags: any(operand(tags) for operand in operands)

    def parse_and(self) -> TagMatcher:
        operands = [self.parse_unary()]
        while self.peek() == "&":
            self.take()
            operands.append(self.parse_unary())
        if len(operands) == 1:
            return operands[0]
        return lambda tags: all(operand(tags) for operand in operands)

    def parse_unary(self) -> TagMatcher:
        if self.peek() == "!":
            self.take()
            inner = self.parse_unary()
            return lambda tags: not inner(tags)
        return self.parse_primary()

    def parse_primary(self) -> TagMatcher:
        token = self.take()
        if token == "(":
            inner = self.parse_or()
            if self.take() != ")":
                raise HarnessError(f"Missing ')' in tag expression: {self.expression!r}")
            return inner
        if token == "any()":
            return lambda tags: bool(tags)
        if token == "none()":
            return lambda tags: not tags
        if token in ("|", "&", ")", ","):
            raise HarnessError(f"Unexpected '{token}' in tag expression: {self.expression!r}")
        return lambda tags: token in tags


def parse_tag_expression(expression: str | None) -> TagMatcher:
    if expression is None or not expression.strip():
        return lambda tags: True
    return _Parser(expression).parse()
