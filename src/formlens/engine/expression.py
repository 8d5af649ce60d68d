"""Boolean filter logic over numbered conditions.

users write things like "(1 AND 2) OR NOT 3" where the numbers are filter
positions. grammar, lowest precedence first:

    expr    := or_expr
    or_expr := and_expr (OR and_expr)*
    and_expr:= not_expr (AND not_expr)*
    not_expr:= NOT? atom
    atom    := INTEGER | '(' expr ')'

so NOT binds tightest, then AND, then OR. keywords are case-insensitive.

I started with a shunting-yard conversion to postfix but the error messages
were awful ("stack underflow" means nothing to a report author). a small
recursive descent parser knows where it is and can say what went wrong.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from formlens.models.result import ExpressionValidation

_TOKEN_RE = re.compile(r"\s*(?:(?P<number>\d+)|(?P<word>[A-Za-z]+)|(?P<lparen>\()|(?P<rparen>\))|(?P<other>\S))")
_KEYWORDS = frozenset({"AND", "OR", "NOT"})

ConditionLookup = Callable[[int], bool]


class ExpressionSyntaxError(ValueError):
    """Malformed filter logic expression."""

    def __init__(self, message: str, position: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.position = position


@dataclass(frozen=True)
class _Token:
    kind: str  # NUMBER, AND, OR, NOT, LPAREN, RPAREN
    text: str
    position: int


# --- syntax tree ---
# nodes evaluate against a lookup so conditions are only computed when the
# short-circuit actually needs them


@dataclass(frozen=True)
class ConditionRef:
    index: int

    def evaluate(self, lookup: ConditionLookup) -> bool:
        return lookup(self.index)

    def indices(self) -> set[int]:
        return {self.index}


@dataclass(frozen=True)
class Not:
    operand: "Expression"

    def evaluate(self, lookup: ConditionLookup) -> bool:
        return not self.operand.evaluate(lookup)

    def indices(self) -> set[int]:
        return self.operand.indices()


@dataclass(frozen=True)
class And:
    operands: tuple["Expression", ...]

    def evaluate(self, lookup: ConditionLookup) -> bool:
        return all(operand.evaluate(lookup) for operand in self.operands)

    def indices(self) -> set[int]:
        return set().union(*(operand.indices() for operand in self.operands))


@dataclass(frozen=True)
class Or:
    operands: tuple["Expression", ...]

    def evaluate(self, lookup: ConditionLookup) -> bool:
        return any(operand.evaluate(lookup) for operand in self.operands)

    def indices(self) -> set[int]:
        return set().union(*(operand.indices() for operand in self.operands))


Expression = ConditionRef | Not | And | Or


def tokenize(expression: str) -> list[_Token]:
    tokens = []
    for match in _TOKEN_RE.finditer(expression):
        position = match.start(match.lastgroup) if match.lastgroup else match.start()
        if match.group("number") is not None:
            tokens.append(_Token("NUMBER", match.group("number"), position))
        elif match.group("word") is not None:
            word = match.group("word").upper()
            if word not in _KEYWORDS:
                raise ExpressionSyntaxError(
                    f"Unknown word '{match.group('word')}' at position {position + 1}. "
                    "Use AND, OR, NOT",
                    position,
                )
            tokens.append(_Token(word, word, position))
        elif match.group("lparen") is not None:
            tokens.append(_Token("LPAREN", "(", position))
        elif match.group("rparen") is not None:
            tokens.append(_Token("RPAREN", ")", position))
        else:
            raise ExpressionSyntaxError(
                f"Unexpected character '{match.group('other')}' at position {position + 1}",
                position,
            )
    return tokens


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _previous(self) -> _Token | None:
        return self.tokens[self.pos - 1] if self.pos > 0 else None

    def parse(self) -> Expression:
        if not self.tokens:
            raise ExpressionSyntaxError("Expression is required")
        node = self._or_expr()
        trailing = self._peek()
        if trailing is not None:
            if trailing.kind == "RPAREN":
                raise ExpressionSyntaxError("Unbalanced parentheses", trailing.position)
            if trailing.kind in ("NUMBER", "LPAREN", "NOT"):
                raise ExpressionSyntaxError(
                    f"Missing operator before '{trailing.text}' at position {trailing.position + 1}",
                    trailing.position,
                )
            raise ExpressionSyntaxError(
                f"Unexpected '{trailing.text}' at position {trailing.position + 1}", trailing.position
            )
        return node

    def _or_expr(self) -> Expression:
        operands = [self._and_expr()]
        while (token := self._peek()) is not None and token.kind == "OR":
            self.pos += 1
            operands.append(self._and_expr())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def _and_expr(self) -> Expression:
        operands = [self._not_expr()]
        while (token := self._peek()) is not None and token.kind == "AND":
            self.pos += 1
            operands.append(self._not_expr())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def _not_expr(self) -> Expression:
        token = self._peek()
        if token is not None and token.kind == "NOT":
            self.pos += 1
            return Not(self._atom())
        return self._atom()

    def _atom(self) -> Expression:
        token = self._peek()
        previous = self._previous()
        if token is None:
            if previous is not None and previous.kind == "LPAREN":
                raise ExpressionSyntaxError("Unbalanced parentheses", previous.position)
            raise ExpressionSyntaxError(
                "Expression cannot end with an operator",
                previous.position if previous else 0,
            )
        self.pos += 1
        if token.kind == "NUMBER":
            return ConditionRef(int(token.text))
        if token.kind == "LPAREN":
            node = self._or_expr()
            closing = self._peek()
            if closing is None or closing.kind != "RPAREN":
                raise ExpressionSyntaxError("Unbalanced parentheses", token.position)
            self.pos += 1
            return node
        if token.kind == "RPAREN":
            if previous is not None and previous.kind == "LPAREN":
                raise ExpressionSyntaxError("Empty parentheses", previous.position)
            raise ExpressionSyntaxError("Unbalanced parentheses", token.position)
        # AND / OR / NOT where a condition was expected
        if previous is None:
            raise ExpressionSyntaxError(
                f"Expression cannot start with {token.text}", token.position
            )
        raise ExpressionSyntaxError(
            f"Invalid operator sequence '{previous.text} {token.text}' at position "
            f"{previous.position + 1}",
            previous.position,
        )


class FilterExpressionEvaluator:
    """Parses, validates and evaluates filter logic expressions."""

    def parse(self, expression: str) -> Expression:
        """Parse an expression string. Raises ExpressionSyntaxError."""
        return _Parser(tokenize(expression)).parse()

    def evaluate(
        self,
        expression: str | Expression,
        results: Sequence[bool] | ConditionLookup,
    ) -> bool:
        """Evaluate against condition results (1-indexed) with short-circuiting.

        results can be a plain sequence of booleans or a callable taking the
        1-based condition index, which lets the caller compute matches lazily.
        """
        node = self.parse(expression) if isinstance(expression, str) else expression
        if callable(results):
            return node.evaluate(results)

        def lookup(index: int) -> bool:
            if not 1 <= index <= len(results):
                raise IndexError(f"Condition {index} not found, {len(results)} results given")
            return bool(results[index - 1])

        return node.evaluate(lookup)

    def validate(self, expression: str, condition_count: int) -> ExpressionValidation:
        """Syntax and range check, for inline display in the editor.

        never raises - problems come back as {valid: false, error}.
        """
        try:
            node = self.parse(expression)
        except ExpressionSyntaxError as e:
            return ExpressionValidation(valid=False, error=e.message)

        referenced = sorted(node.indices())
        invalid = [index for index in referenced if not 1 <= index <= condition_count]
        if invalid:
            if condition_count == 0:
                error = "No filter conditions to reference. Add a filter first"
            else:
                error = (
                    f"Invalid condition numbers: {', '.join(str(i) for i in invalid)}. "
                    f"Use numbers 1-{condition_count}"
                )
            return ExpressionValidation(valid=False, error=error, referenced_indices=referenced)
        return ExpressionValidation(valid=True, referenced_indices=referenced)

    def referenced_indices(self, expression: str | Expression) -> list[int]:
        node = self.parse(expression) if isinstance(expression, str) else expression
        return sorted(node.indices())

    def implicit_conjunction(self, condition_count: int) -> Expression | None:
        """`1 AND 2 AND ... AND n`; None when there are no conditions."""
        if condition_count < 1:
            return None
        if condition_count == 1:
            return ConditionRef(1)
        return And(tuple(ConditionRef(i) for i in range(1, condition_count + 1)))

    def default_expression(self, condition_count: int, logic: str = "AND") -> str:
        logic = logic.upper()
        if logic not in ("AND", "OR"):
            raise ValueError(f"Logic must be AND or OR, got {logic}")
        return f" {logic} ".join(str(i) for i in range(1, condition_count + 1))

    def suggest_expression(self, condition_count: int) -> str:
        """Placeholder expression shown when the user switches to manual logic."""
        if condition_count <= 0:
            return ""
        if condition_count == 1:
            return "1"
        if condition_count == 2:
            return "1 AND 2"
        if condition_count == 3:
            return "(1 AND 2) OR 3"
        return f"(1 AND 2) OR ({condition_count - 1} AND {condition_count})"
