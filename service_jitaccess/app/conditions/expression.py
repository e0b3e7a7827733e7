"""
IAM condition expressions.

A ``ConditionExpression`` wraps the text of a CEL condition as found on a
role binding. Compilation, evaluation and canonical rendering are handed
to the process-wide ``ExpressionEngine``; splitting a condition into its
top-level AND clauses is done on the raw text so that the clauses keep
their original formatting.
"""

import functools
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import celpy
from celpy import celtypes
from celpy.celparser import CELParseError, DumpAST
from celpy.evaluation import CELEvalError

from shared.errors import InvalidArgument, InvalidExpression
from shared.logging import get_logger


class ExpressionEngine:
    """Compiles, evaluates and renders CEL expressions.

    Holds no per-call state, so a single instance is shared by all callers.
    """

    def __init__(self):
        self._environment = celpy.Environment()

    def compile(self, text: str) -> Any:
        """Compile ``text`` into an AST."""
        try:
            return self._environment.compile(text)
        except CELParseError as e:
            raise InvalidExpression(
                f"Condition cannot be parsed: {e}",
                details={"expression": text}
            ) from e

    def evaluate(self, ast: Any, variables: Dict[str, Any]) -> Any:
        """Evaluate a compiled AST against the given variables."""
        try:
            result = self._environment.program(ast).evaluate(variables)
        except CELEvalError as e:
            raise InvalidExpression(f"Condition cannot be evaluated: {e}") from e

        if isinstance(result, CELEvalError):
            raise InvalidExpression(f"Condition cannot be evaluated: {result}")
        return result

    def unparse(self, ast: Any) -> str:
        """Render a compiled AST in canonical form."""
        return _collapse_whitespace(DumpAST.display(ast))


def _collapse_whitespace(text: str) -> str:
    """Replace runs of whitespace outside string literals by a single space."""
    result: List[str] = []
    quote: Optional[str] = None
    pending_space = False

    i = 0
    while i < len(text):
        c = text[i]
        if quote:
            result.append(c)
            if c == "\\" and i + 1 < len(text):
                result.append(text[i + 1])
                i += 1
            elif c == quote:
                quote = None
        elif c.isspace():
            pending_space = True
        else:
            if pending_space and result:
                result.append(" ")
            pending_space = False
            if c in ("'", '"'):
                quote = c
            result.append(c)
        i += 1

    return "".join(result)


@functools.lru_cache(maxsize=None)
def get_expression_engine() -> ExpressionEngine:
    """Process-wide expression engine, created on first use."""
    get_logger("jitaccess.conditions").debug("Initializing expression engine")
    return ExpressionEngine()


class ConditionExpression:
    """An immutable IAM condition expression."""

    __slots__ = ("_expression",)

    def __init__(self, expression: str):
        if expression is None:
            raise InvalidArgument("Condition expression must not be None")
        object.__setattr__(self, "_expression", expression)

    def __setattr__(self, name, value):
        raise AttributeError("ConditionExpression is immutable")

    @property
    def expression(self) -> str:
        return self._expression

    def __str__(self) -> str:
        return self._expression

    def __repr__(self) -> str:
        return f"ConditionExpression({self._expression!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, ConditionExpression):
            return NotImplemented
        return self._expression == other._expression

    def __hash__(self) -> int:
        return hash(self._expression)

    def evaluate(self, time: Optional[datetime] = None,
                 engine: Optional[ExpressionEngine] = None) -> bool:
        """Evaluate the condition with ``request.time`` bound to ``time`` (default: now)."""
        engine = engine or get_expression_engine()
        if time is None:
            time = datetime.now(timezone.utc)
        elif time.tzinfo is None:
            time = time.replace(tzinfo=timezone.utc)

        request = celtypes.MapType({
            celtypes.StringType("time"): celtypes.TimestampType(time)
        })

        result = engine.evaluate(engine.compile(self._expression), {"request": request})
        if not isinstance(result, (bool, celtypes.BoolType)):
            raise InvalidExpression(
                "Condition does not evaluate to a boolean",
                details={"expression": self._expression}
            )
        return bool(result)

    def reformat(self, engine: Optional[ExpressionEngine] = None) -> "ConditionExpression":
        """Condition using canonical formatting, or this condition if it does not compile."""
        engine = engine or get_expression_engine()
        try:
            return ConditionExpression(engine.unparse(engine.compile(self._expression)))
        except InvalidExpression:
            return self

    def split_on_top_level_and(self) -> List["ConditionExpression"]:
        """Split the condition into the clauses joined by a top-level ``&&``.

        Parentheses and quotes are tracked so that an ``&&`` inside a nested
        clause or a string literal does not count as a boundary.
        """
        clauses: List[ConditionExpression] = []
        current: List[str] = []

        text = self._expression
        depth = 0
        single_quotes = 0
        double_quotes = 0

        i = 0
        while i < len(text):
            c = text[i]

            if (c == "&"
                    and depth == 0
                    and single_quotes % 2 == 0
                    and double_quotes % 2 == 0
                    and i + 1 < len(text)
                    and text[i + 1] == "&"):
                clauses.append(ConditionExpression("".join(current)))
                current = []
                i += 2
                continue

            if c == "(":
                depth += 1
            elif c == ")":
                depth -= 1
            elif c == "'":
                single_quotes += 1
            elif c == '"':
                double_quotes += 1

            current.append(c)
            i += 1

        if current:
            clauses.append(ConditionExpression("".join(current)))

        return clauses

    @staticmethod
    def and_all(clauses: Iterable["ConditionExpression"]) -> "ConditionExpression":
        """Combine clauses into a single condition by AND-ing them."""
        clauses = list(clauses)
        if not clauses:
            raise InvalidArgument("At least one clause is required")

        return ConditionExpression(" && ".join(f"({c.expression})" for c in clauses))
