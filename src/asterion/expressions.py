"""
Symbolic orbital-element expressions
====================================

Configuration values may be plain numbers or references to the current state
of a celestial body. Four forms are recognised:

========================== ==========================================
Text                       Meaning
========================== ==========================================
``1.5e9``                  literal number
``Ratio(Kerbin.sma, 0.5)`` property times a factor
``Resonance(Jool, 2:3)``   semimajor axis times (p/q)^(2/3)
``Offset(Jool.lpe, 60)``   angle property plus degrees, in [0, 360)
========================== ==========================================

Expressions are parsed once and resolved at every draw against a
``BodyTable``, so they follow the bodies as the simulation advances.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .bodies import ALL_PROPERTIES, ANGLE_PROPERTIES, BodyTable
from .errors import InvalidResonance, MalformedExpression, UnknownProperty
from .utils import wrap_degrees


class ExprType(Enum):
    LITERAL = 'literal'
    RATIO = 'ratio'
    RESONANCE = 'resonance'
    OFFSET = 'offset'


# body names may contain nearly any character, including spaces and dots
_BODY = r'(?P<body>.+?)'
_PROP = r'(?P<prop>[a-z0-9]+)'
_NUMBER = r'(?P<number>[-+.eE\d]+)'
_RATIO_RE = re.compile(rf'Ratio\(\s*{_BODY}\s*\.\s*{_PROP}\s*,\s*{_NUMBER}\s*\)', re.IGNORECASE)
_OFFSET_RE = re.compile(rf'Offset\(\s*{_BODY}\s*\.\s*{_PROP}\s*,\s*{_NUMBER}\s*\)', re.IGNORECASE)
_RESONANCE_RE = re.compile(
    rf'Resonance\(\s*{_BODY}\s*,\s*(?P<p>[-+]?\d+)\s*:\s*(?P<q>[-+]?\d+)\s*\)', re.IGNORECASE)


@dataclass(frozen=True)
class Expression:
    """
    Immutable parsed expression.

    Attributes
    ----------
    kind : ExprType
        Expression form
    value : float
        Literal value, Ratio factor, or Offset increment [deg]
    body : str, optional
        Referenced body (all forms except LITERAL)
    prop : str, optional
        Referenced property code (RATIO and OFFSET)
    p, q : int, optional
        Period ratio terms (RESONANCE)
    """
    kind: ExprType
    value: float = 0.0
    body: Optional[str] = None
    prop: Optional[str] = None
    p: Optional[int] = None
    q: Optional[int] = None

    def __post_init__(self):
        if self.kind == ExprType.LITERAL:
            if math.isnan(self.value):
                raise MalformedExpression(f"Literal is not a number: {self.value}")
            return
        if not self.body:
            raise MalformedExpression(f"{self.kind.value} expression needs a body name")
        if self.kind == ExprType.RESONANCE:
            if self.p is None or self.q is None or self.p <= 0 or self.q <= 0:
                raise InvalidResonance(
                    f"Resonance must have positive integers (gave {self.p}:{self.q})")
            return
        if self.prop not in ALL_PROPERTIES:
            raise UnknownProperty(f"Celestial bodies do not have a '{self.prop}' value")
        if self.kind == ExprType.OFFSET and self.prop not in ANGLE_PROPERTIES:
            raise UnknownProperty(
                f"Offset needs an angle property, '{self.prop}' is not one of "
                f"{sorted(ANGLE_PROPERTIES)}")

    # ========== CONSTRUCTORS ==========
    @classmethod
    def literal(cls, value: float) -> "Expression":
        return cls(ExprType.LITERAL, value=float(value))

    @classmethod
    def ratio(cls, body: str, prop: str, factor: float) -> "Expression":
        """``body.prop * factor``"""
        return cls(ExprType.RATIO, value=float(factor), body=body, prop=prop.lower())

    @classmethod
    def resonance(cls, body: str, p: int, q: int) -> "Expression":
        """Semimajor axis with orbital period ratio p:q to ``body``"""
        return cls(ExprType.RESONANCE, body=body, p=int(p), q=int(q))

    @classmethod
    def offset(cls, body: str, prop: str, delta: float) -> "Expression":
        """``body.prop + delta`` for an angle property, wrapped to [0, 360)"""
        return cls(ExprType.OFFSET, value=float(delta), body=body, prop=prop.lower())

    # ========== EVALUATION ==========
    def resolve(self, bodies: BodyTable) -> float:
        """Evaluate against a body table (see ``resolve``)."""
        return resolve(self, bodies)

    @property
    def is_literal(self) -> bool:
        return self.kind == ExprType.LITERAL

    def __str__(self):
        if self.kind == ExprType.LITERAL:
            return repr(self.value)
        if self.kind == ExprType.RATIO:
            return f"Ratio({self.body}.{self.prop}, {self.value!r})"
        if self.kind == ExprType.OFFSET:
            return f"Offset({self.body}.{self.prop}, {self.value!r})"
        return f"Resonance({self.body}, {self.p}:{self.q})"


ExpressionLike = Union[Expression, str, int, float]


def parse_expression(text: ExpressionLike) -> Expression:
    """
    Parse configuration text into an Expression.

    Parameters
    ----------
    text : str, int, float or Expression
        Numbers become literals; Expressions are returned unchanged

    Returns
    -------
    Expression

    Raises
    ------
    MalformedExpression
        If the text matches none of the expression forms
    UnknownProperty
        If a property code is not recognized, or Offset uses a non-angle
        property
    InvalidResonance
        If a resonance term is not positive

    Examples
    --------
    >>> parse_expression('Ratio(Kerbin.sma, 0.5)')
    Expression(kind=<ExprType.RATIO: 'ratio'>, value=0.5, body='Kerbin', prop='sma', p=None, q=None)
    """
    if isinstance(text, Expression):
        return text
    if isinstance(text, bool):
        raise MalformedExpression(f"Cannot use boolean {text} as a value")
    if isinstance(text, (int, float)):
        return Expression.literal(text)
    if not isinstance(text, str):
        raise MalformedExpression(f"Cannot parse {type(text).__name__} as an expression")

    raw = text.strip()
    match = _RATIO_RE.fullmatch(raw)
    if match:
        return Expression.ratio(match['body'], match['prop'],
                                _parse_number(match['number'], raw))
    match = _OFFSET_RE.fullmatch(raw)
    if match:
        return Expression.offset(match['body'], match['prop'],
                                 _parse_number(match['number'], raw))
    match = _RESONANCE_RE.fullmatch(raw)
    if match:
        return Expression.resonance(match['body'], int(match['p']), int(match['q']))
    return Expression.literal(_parse_number(raw, raw))


def _parse_number(token: str, context: str) -> float:
    try:
        value = float(token)
    except ValueError:
        raise MalformedExpression(
            f"Cannot parse '{token}' as a floating point number (in '{context}')") from None
    if math.isnan(value):
        raise MalformedExpression(f"'{context}' is not a number")
    return value


def resolve(expression: Expression, bodies: BodyTable) -> float:
    """
    Evaluate an expression against the current body table.

    Pure in its inputs: two calls with the same table give the same number.

    Parameters
    ----------
    expression : Expression
        Parsed expression
    bodies : BodyTable
        Current body snapshot

    Returns
    -------
    float
        Resolved value; Offset results are in [0, 360)

    Raises
    ------
    UnknownBody
        If the referenced body is not in the table
    UnknownProperty
        If the body does not have the referenced property
    """
    kind = expression.kind
    if kind == ExprType.LITERAL:
        return expression.value
    if kind == ExprType.RATIO:
        return bodies.property_of(expression.body, expression.prop) * expression.value
    if kind == ExprType.RESONANCE:
        sma = bodies.property_of(expression.body, 'sma')
        return sma * (expression.p / expression.q) ** (2.0 / 3.0)
    # OFFSET
    return wrap_degrees(bodies.property_of(expression.body, expression.prop) + expression.value)
