"""
Sandboxed condition evaluator for logic nodes

Grammar::

    expr       := or
    or         := and ( "||" and )*
    and        := not ( "&&" not )*
    not        := "!" not | comparison
    comparison := operand ( ( ">" | "<" | ">=" | "<=" | "==" | "!=" ) operand )?
    operand    := NUMBER | STRING | true | false | null | reference | "(" expr ")"
    reference  := "data." path | "{{" path "}}"

References resolve against the current data. Nothing is ever handed to the
host interpreter; any problem yields ``False``.
"""
import logging
import re
from typing import Any, List, NamedTuple, Optional

from .templating import get_nested_value, has_path


logger = logging.getLogger(__name__)


class ConditionSyntaxError(ValueError):
    """Expression could not be tokenized or parsed"""


class UnresolvedReference(ValueError):
    """A ``data.x`` or ``{{x}}`` reference has no value"""


class Token(NamedTuple):
    kind: str
    value: Any


_TOKEN_SPEC = [
    ("WS", r"\s+"),
    ("NUMBER", r"-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?"),
    ("STRING", r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'"),
    ("PLACEHOLDER", r"\{\{\s*[\w.]+\s*\}\}"),
    ("OP", r"===|!==|==|!=|>=|<=|&&|\|\||>|<|!"),
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("NAME", r"[A-Za-z_][\w.]*"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

_KEYWORDS = {"true": True, "false": False, "null": None}

MAX_NESTING = 64


def _unescape(literal: str) -> str:
    body = literal[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


class ConditionEvaluator:
    """Evaluates boolean condition strings against a data mapping"""

    def evaluate(self, condition: str, data: Any) -> bool:
        """Return the boolean value of ``condition``, ``False`` on any error"""
        if not condition or not condition.strip():
            return False
        try:
            tokens = self.tokenize(condition)
            parser = _Parser(tokens, data)
            value = parser.parse()
        except (ConditionSyntaxError, UnresolvedReference, TypeError, RecursionError) as e:
            logger.warning(f"Condition '{condition}' evaluated to false: {e}")
            return False
        return bool(value)

    def tokenize(self, condition: str) -> List[Token]:
        tokens = []
        position = 0
        while position < len(condition):
            match = _TOKEN_RE.match(condition, position)
            if not match:
                raise ConditionSyntaxError(
                    f"Unexpected character {condition[position]!r} at {position}"
                )
            kind = match.lastgroup
            text = match.group()
            position = match.end()

            if kind == "WS":
                continue
            if kind == "NUMBER":
                value = float(text) if any(c in text for c in ".eE") else int(text)
                tokens.append(Token("LITERAL", value))
            elif kind == "STRING":
                tokens.append(Token("LITERAL", _unescape(text)))
            elif kind == "PLACEHOLDER":
                tokens.append(Token("REF", text[2:-2].strip()))
            elif kind == "NAME":
                if text in _KEYWORDS:
                    tokens.append(Token("LITERAL", _KEYWORDS[text]))
                elif text.startswith("data.") and len(text) > 5:
                    tokens.append(Token("REF", text[5:]))
                else:
                    raise ConditionSyntaxError(f"Unknown identifier '{text}'")
            elif kind == "OP":
                # JavaScript-style strict operators behave like the plain ones here
                tokens.append(Token("OP", {"===": "==", "!==": "!="}.get(text, text)))
            else:
                tokens.append(Token(kind, text))
        return tokens


class _Parser:
    """Recursive-descent evaluator over a token list"""

    def __init__(self, tokens: List[Token], data: Any):
        self.tokens = tokens
        self.data = data
        self.position = 0
        self.depth = 0

    def parse(self) -> Any:
        if not self.tokens:
            raise ConditionSyntaxError("Empty expression")
        value = self._or()
        if self._peek() is not None:
            raise ConditionSyntaxError(f"Unexpected token {self._peek().value!r}")
        return value

    def _peek(self) -> Optional[Token]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise ConditionSyntaxError("Unexpected end of expression")
        self.position += 1
        return token

    def _match_op(self, *ops: str) -> Optional[str]:
        token = self._peek()
        if token is not None and token.kind == "OP" and token.value in ops:
            self.position += 1
            return token.value
        return None

    def _or(self) -> Any:
        # Both sides are always parsed so syntax errors are never masked by short-circuiting
        left = self._and()
        while self._match_op("||"):
            right = self._and()
            left = bool(left) or bool(right)
        return left

    def _and(self) -> Any:
        left = self._not()
        while self._match_op("&&"):
            right = self._not()
            left = bool(left) and bool(right)
        return left

    def _not(self) -> Any:
        negations = 0
        while self._match_op("!"):
            negations += 1
        value = self._comparison()
        if negations:
            return bool(value) != (negations % 2 == 1)
        return value

    def _comparison(self) -> Any:
        left = self._operand()
        op = self._match_op(">", "<", ">=", "<=", "==", "!=")
        if op is None:
            return left
        right = self._operand()
        return self._compare(op, left, right)

    def _compare(self, op: str, left: Any, right: Any) -> bool:
        if op == "==":
            return left == right
        if op == "!=":
            return left != right

        numeric = (int, float)
        if isinstance(left, bool) or isinstance(right, bool):
            raise TypeError(f"Cannot order booleans with '{op}'")
        if not (
            (isinstance(left, numeric) and isinstance(right, numeric))
            or (isinstance(left, str) and isinstance(right, str))
        ):
            raise TypeError(f"Cannot compare {type(left).__name__} {op} {type(right).__name__}")

        if op == ">":
            return left > right
        if op == "<":
            return left < right
        if op == ">=":
            return left >= right
        return left <= right

    def _operand(self) -> Any:
        token = self._advance()
        if token.kind == "LITERAL":
            return token.value
        if token.kind == "REF":
            if not has_path(self.data, token.value):
                raise UnresolvedReference(f"No value for '{token.value}'")
            return get_nested_value(self.data, token.value)
        if token.kind == "LPAREN":
            self.depth += 1
            if self.depth > MAX_NESTING:
                raise ConditionSyntaxError(f"Parentheses nested deeper than {MAX_NESTING}")
            value = self._or()
            self.depth -= 1
            closing = self._advance()
            if closing.kind != "RPAREN":
                raise ConditionSyntaxError("Expected ')'")
            return value
        raise ConditionSyntaxError(f"Unexpected token {token.value!r}")
