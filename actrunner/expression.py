"""Evaluation of workflow expressions such as ``${{ github.actor }}``."""

from __future__ import annotations

import enum
import hashlib
import json
import logging
import math
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

KNOWN_CONTEXTS = frozenset(
    {
        "github", "env", "job", "jobs", "steps", "runner", "secrets",
        "strategy", "matrix", "needs", "inputs", "vars",
    }
)

_STATUS_FUNCTIONS = frozenset({"success", "failure", "always", "cancelled"})

_LEXEME_PATTERN = re.compile(
    r"\s*(?:"
    r"(?P<num>-?(?:0x[0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))"
    r"|(?P<str>'(?:[^']|'')*')"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_-]*)"
    r"|(?P<op>&&|\|\||==|!=|<=|>=|[()\[\].,!<>*])"
    r")"
)

_MASK = re.compile(r"::add-mask::.*")
_INSERT_DIRECTIVE = re.compile(r"\$\{\{\s*insert\s*\}\}")
_STRING_END = re.compile(r"(?:''|[^'])*'")


class DefaultStatusCheck(enum.Enum):
    """Status check applied when an expression calls no status function."""

    NONE = "none"
    SUCCESS = "success"
    ALWAYS = "always"
    CANCELED = "cancelled"
    FAILURE = "failure"


class ExpressionError(ValueError):
    """Raised when an expression cannot be parsed or evaluated."""


class _Filtered(list):
    """Result of an object filter (``.*``)."""


def _tokenize(text: str) -> list[tuple[str, Any]]:
    lexemes = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _LEXEME_PATTERN.match(text, pos)
        if not match or match.end() == pos:
            raise ExpressionError(f"Unexpected symbol at position {pos} in '{text}'")
        kind = match.lastgroup
        lexemes.append((kind, match.group(kind)))
        pos = match.end()
    return lexemes


class _Parser:
    def __init__(self, lexemes: list[tuple[str, Any]], source: str):
        self.lexemes = lexemes
        self.pos = 0
        self.source = source

    def peek(self, value: str | None = None) -> bool:
        if self.pos >= len(self.lexemes):
            return False
        return value is None or self.lexemes[self.pos] == ("op", value)

    def take(self) -> tuple[str, Any]:
        if self.pos >= len(self.lexemes):
            raise ExpressionError(f"Unexpected end of expression '{self.source}'")
        lexeme = self.lexemes[self.pos]
        self.pos += 1
        return lexeme

    def expect(self, value: str) -> None:
        if self.take() != ("op", value):
            raise ExpressionError(f"Expected '{value}' in '{self.source}'")

    def parse(self):
        if not self.lexemes:
            raise ExpressionError("Empty expression")
        node = self.parse_or()
        if self.pos != len(self.lexemes):
            raise ExpressionError(
                f"Unexpected symbol '{self.lexemes[self.pos][1]}' in '{self.source}'"
            )
        return node

    def parse_or(self):
        node = self.parse_and()
        while self.peek("||"):
            self.take()
            node = ("or", node, self.parse_and())
        return node

    def parse_and(self):
        node = self.parse_equality()
        while self.peek("&&"):
            self.take()
            node = ("and", node, self.parse_equality())
        return node

    def parse_equality(self):
        node = self.parse_comparison()
        while self.peek("==") or self.peek("!="):
            op = self.take()[1]
            node = ("bin", op, node, self.parse_comparison())
        return node

    def parse_comparison(self):
        node = self.parse_unary()
        while any(self.peek(op) for op in ("<", "<=", ">", ">=")):
            op = self.take()[1]
            node = ("bin", op, node, self.parse_unary())
        return node

    def parse_unary(self):
        if self.peek("!"):
            self.take()
            return ("not", self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self):
        node = self.parse_primary()
        while True:
            if self.peek("."):
                self.take()
                kind, value = self.take()
                if (kind, value) == ("op", "*"):
                    node = ("star", node)
                elif kind == "ident":
                    node = ("prop", node, value)
                else:
                    raise ExpressionError(f"Invalid property access in '{self.source}'")
            elif self.peek("["):
                self.take()
                if self.peek("*"):
                    self.take()
                    node = ("star", node)
                else:
                    node = ("index", node, self.parse_or())
                self.expect("]")
            else:
                return node

    def parse_primary(self):
        kind, value = self.take()
        if kind == "num":
            return ("lit", _parse_number(value))
        if kind == "str":
            return ("lit", value[1:-1].replace("''", "'"))
        if kind == "ident":
            lowered = value.lower()
            if self.peek("("):
                self.take()
                args = []
                if not self.peek(")"):
                    args.append(self.parse_or())
                    while self.peek(","):
                        self.take()
                        args.append(self.parse_or())
                self.expect(")")
                return ("call", lowered, args)
            literals = {"true": True, "false": False, "null": None,
                        "nan": math.nan, "infinity": math.inf}
            if lowered in literals:
                return ("lit", literals[lowered])
            return ("ctx", lowered)
        if (kind, value) == ("op", "("):
            node = self.parse_or()
            self.expect(")")
            return node
        raise ExpressionError(f"Unexpected symbol '{value}' in '{self.source}'")


def _parse_number(text: str) -> int | float:
    negative = text.startswith("-")
    body = text[1:] if negative else text
    if body.lower().startswith("0x"):
        number: int | float = int(body, 16)
    elif any(c in body for c in ".eE"):
        number = float(body)
    else:
        number = int(body)
    return -number if negative else number


def _uses_status_function(node) -> bool:
    if node[0] == "call" and node[1] in _STATUS_FUNCTIONS:
        return True
    return any(
        _uses_status_function(child)
        for child in node[1:]
        if isinstance(child, tuple)
    ) or (node[0] == "call" and any(_uses_status_function(a) for a in node[2]))


def _is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "num"
    if isinstance(value, str):
        return "str"
    return "obj"


def _to_number(value: Any) -> float:
    kind = _kind(value)
    if kind == "null":
        return 0.0
    if kind in ("bool", "num"):
        return float(value)
    if kind == "str":
        text = value.strip()
        if not text:
            return 0.0
        try:
            if text.lower().startswith("0x"):
                return float(int(text, 16))
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _loose_equal(left: Any, right: Any) -> bool:
    kl, kr = _kind(left), _kind(right)
    if kl == kr:
        if kl == "str":
            return left.lower() == right.lower()
        if kl == "obj":
            return left is right
        return left == right
    return _to_number(left) == _to_number(right)


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        a: Any = left.lower()
        b: Any = right.lower()
    else:
        a, b = _to_number(left), _to_number(right)
        if math.isnan(a) or math.isnan(b):
            return False
    return {"<": a < b, "<=": a <= b, ">": a > b, ">=": a >= b}[op]


def _to_string(value: Any) -> str:
    kind = _kind(value)
    if kind == "null":
        return ""
    if kind == "bool":
        return "true" if value else "false"
    if kind == "num":
        if isinstance(value, float):
            if math.isnan(value):
                return "NaN"
            if math.isinf(value):
                return "Infinity" if value > 0 else "-Infinity"
            if value.is_integer():
                return str(int(value))
        return str(value)
    if kind == "str":
        return value
    return "Array" if isinstance(value, list) else "Object"


def _lookup(container: Any, key: Any) -> Any:
    if isinstance(container, _Filtered):
        result = _Filtered()
        for item in container:
            value = _lookup(item, key)
            if value is not None:
                result.append(value)
        return result
    if isinstance(container, Mapping):
        if not isinstance(key, str):
            return None
        if key in container:
            return container[key]
        lowered = key.lower()
        for name, value in container.items():
            if isinstance(name, str) and name.lower() == lowered:
                return value
        return None
    if isinstance(container, Sequence) and not isinstance(container, str):
        if isinstance(key, bool) or not isinstance(key, (int, float)):
            return None
        if isinstance(key, float) and (math.isnan(key) or not key.is_integer()):
            return None
        index = int(key)
        return container[index] if 0 <= index < len(container) else None
    return None


def _format(template: str, args: list[Any]) -> str:
    out = []
    pos = 0
    while pos < len(template):
        char = template[pos]
        if char == "{":
            if template.startswith("{{", pos):
                out.append("{")
                pos += 2
                continue
            end = template.find("}", pos)
            digits = template[pos + 1:end] if end != -1 else ""
            if not digits.isdigit():
                raise ExpressionError(f"Invalid format string '{template}'")
            index = int(digits)
            if index >= len(args):
                raise ExpressionError(f"Format index {index} out of range in '{template}'")
            out.append(_to_string(args[index]))
            pos = end + 1
        elif char == "}":
            if not template.startswith("}}", pos):
                raise ExpressionError(f"Invalid format string '{template}'")
            out.append("}")
            pos += 2
        else:
            out.append(char)
            pos += 1
    return "".join(out)


class Interpreter:
    """Evaluates parsed expressions against a set of named contexts."""

    def __init__(self, contexts: Mapping[str, Any], working_dir: str = ".", context: str = "job"):
        self.contexts = {name.lower(): value for name, value in contexts.items()}
        self.working_dir = working_dir
        self.context = context

    def evaluate(self, expression: str, default_status_check: DefaultStatusCheck) -> Any:
        text = expression.strip()
        if text.startswith("${{") and text.endswith("}}"):
            text = text[3:-2]
        node = _Parser(_tokenize(text), text).parse()
        if default_status_check is not DefaultStatusCheck.NONE and not _uses_status_function(node):
            node = ("and", ("call", default_status_check.value, []), node)
        return self._eval(node)

    def _eval(self, node) -> Any:
        kind = node[0]
        if kind == "lit":
            return node[1]
        if kind == "ctx":
            if node[1] not in KNOWN_CONTEXTS:
                raise ExpressionError(f"Unavailable context: {node[1]}")
            return self.contexts.get(node[1])
        if kind == "prop":
            return _lookup(self._eval(node[1]), node[2])
        if kind == "index":
            return _lookup(self._eval(node[1]), self._eval(node[2]))
        if kind == "star":
            value = self._eval(node[1])
            if isinstance(value, Mapping):
                return _Filtered(value.values())
            if isinstance(value, list):
                return _Filtered(value)
            return _Filtered()
        if kind == "not":
            return not _is_truthy(self._eval(node[1]))
        if kind == "and":
            left = self._eval(node[1])
            return self._eval(node[2]) if _is_truthy(left) else left
        if kind == "or":
            left = self._eval(node[1])
            return left if _is_truthy(left) else self._eval(node[2])
        if kind == "bin":
            op, left, right = node[1], self._eval(node[2]), self._eval(node[3])
            if op == "==":
                return _loose_equal(left, right)
            if op == "!=":
                return not _loose_equal(left, right)
            return _compare(op, left, right)
        if kind == "call":
            return self._call(node[1], [self._eval(arg) for arg in node[2]])
        raise ExpressionError(f"Unknown node {kind}")

    def _job_status(self) -> str:
        job = self.contexts.get("job") or {}
        return job.get("status", "success") if isinstance(job, Mapping) else "success"

    def _needs_results(self) -> list[Any]:
        needs = self.contexts.get("needs") or {}
        return [_lookup(value, "result") for value in needs.values()]

    def _call(self, name: str, args: list[Any]) -> Any:
        if name == "success":
            if self.context == "job":
                return all(result == "success" for result in self._needs_results())
            return self._job_status() == "success"
        if name == "failure":
            if self.context == "job":
                return any(result == "failure" for result in self._needs_results())
            return self._job_status() == "failure"
        if name == "always":
            return True
        if name == "cancelled":
            return False
        if name == "contains":
            self._arity(name, args, 2, 2)
            haystack, needle = args
            if isinstance(haystack, list):
                return any(_loose_equal(item, needle) for item in haystack)
            return _to_string(needle).lower() in _to_string(haystack).lower()
        if name == "startswith":
            self._arity(name, args, 2, 2)
            return _to_string(args[0]).lower().startswith(_to_string(args[1]).lower())
        if name == "endswith":
            self._arity(name, args, 2, 2)
            return _to_string(args[0]).lower().endswith(_to_string(args[1]).lower())
        if name == "format":
            self._arity(name, args, 1, None)
            return _format(_to_string(args[0]), args[1:])
        if name == "join":
            self._arity(name, args, 1, 2)
            separator = _to_string(args[1]) if len(args) > 1 else ","
            if isinstance(args[0], list):
                return separator.join(_to_string(item) for item in args[0])
            return _to_string(args[0])
        if name == "tojson":
            self._arity(name, args, 1, 1)
            return json.dumps(args[0], indent=2, sort_keys=True, ensure_ascii=False)
        if name == "fromjson":
            self._arity(name, args, 1, 1)
            try:
                return json.loads(_to_string(args[0]))
            except json.JSONDecodeError as exc:
                raise ExpressionError(f"Invalid JSON: {exc}") from exc
        if name == "hashfiles":
            return self._hash_files([_to_string(arg) for arg in args])
        raise ExpressionError(f"Unknown function: {name}")

    @staticmethod
    def _arity(name: str, args: list[Any], low: int, high: int | None) -> None:
        if len(args) < low or (high is not None and len(args) > high):
            raise ExpressionError(f"Wrong number of arguments to {name}()")

    def _hash_files(self, patterns: list[str]) -> str:
        root = Path(self.working_dir)
        files: set[Path] = set()
        for pattern in patterns:
            try:
                files.update(p for p in root.glob(pattern) if p.is_file())
            except (ValueError, NotImplementedError, OSError):
                continue
        if not files:
            return ""
        digest = hashlib.sha256()
        for path in sorted(files):
            digest.update(hashlib.sha256(path.read_bytes()).digest())
        return digest.hexdigest()


class ExpressionEvaluator:
    """Evaluates and interpolates expressions with an interpreter."""

    def __init__(self, interpreter: Interpreter):
        self.interpreter = interpreter

    def evaluate(self, expression: str, default_status_check: DefaultStatusCheck) -> Any:
        log.debug("evaluating expression '%s'", expression)
        result = self.interpreter.evaluate(expression, default_status_check)
        printable = _MASK.sub("::add-mask::***)", _to_string(result))
        log.debug("expression '%s' evaluated to '%s'", expression, printable)
        return result

    def evaluate_tree(self, value: Any) -> Any:
        """Return a copy of a parsed YAML value with its expressions evaluated."""
        if isinstance(value, Mapping):
            result: dict[Any, Any] = {}
            for key, item in value.items():
                evaluated = self.evaluate_tree(item)
                if isinstance(key, str) and _INSERT_DIRECTIVE.search(key):
                    if isinstance(evaluated, Mapping):
                        result.update(evaluated)
                else:
                    result[self.evaluate_tree(key)] = evaluated
            return result
        if isinstance(value, list):
            items: list[Any] = []
            for item in value:
                was_sequence = isinstance(item, list)
                evaluated = self.evaluate_tree(item)
                if isinstance(evaluated, list) and not was_sequence:
                    items.extend(evaluated)
                else:
                    items.append(evaluated)
            return items
        if isinstance(value, str) and "${{" in value and "}}" in value:
            return self.evaluate(rewrite_sub_expression(value, False), DefaultStatusCheck.NONE)
        return value

    def interpolate(self, text: str) -> str:
        if "${{" not in text or "}}" not in text:
            return text
        expression = rewrite_sub_expression(text, True)
        try:
            result = self.evaluate(expression, DefaultStatusCheck.NONE)
        except ExpressionError as exc:
            log.error("Unable to interpolate expression '%s': %s", expression, exc)
            return ""
        if not isinstance(result, str):
            raise TypeError(f"Expression {expression} did not evaluate to a string")
        return result


def eval_bool(evaluator: ExpressionEvaluator, expression: str,
              default_status_check: DefaultStatusCheck) -> bool:
    """Evaluate an expression and return its truthiness."""
    rewritten = rewrite_sub_expression(expression, False)
    return _is_truthy(evaluator.evaluate(rewritten, default_status_check))


def escape_format_string(text: str) -> str:
    return text.replace("{", "{{").replace("}", "}}")


def rewrite_sub_expression(text: str, force_format: bool) -> str:
    """Turn text with embedded ``${{ }}`` blocks into one ``format()`` call."""
    if "${{" not in text or "}}" not in text:
        return text

    pos = 0
    expr_start = -1
    in_string = False
    results: list[str] = []
    format_out = ""
    while pos < len(text):
        if in_string:
            match = _STRING_END.match(text, pos)
            if match is None:
                raise ExpressionError("unclosed string.")
            in_string = False
            pos = match.end()
        elif expr_start > -1:
            expr_end = text.find("}}", pos)
            str_start = text.find("'", pos)
            if expr_end > -1 and str_start > -1:
                if expr_end < str_start:
                    str_start = -1
                else:
                    expr_end = -1
            if expr_end > -1:
                format_out += "{%d}" % len(results)
                results.append(text[expr_start:expr_end].strip())
                pos = expr_end + 2
                expr_start = -1
            elif str_start > -1:
                in_string = True
                pos = str_start + 1
            else:
                raise ExpressionError("unclosed expression.")
        else:
            start = text.find("${{", pos)
            if start != -1:
                format_out += escape_format_string(text[pos:start])
                expr_start = start + 3
                pos = expr_start
            else:
                format_out += escape_format_string(text[pos:])
                pos = len(text)

    if len(results) == 1 and format_out == "{0}" and not force_format:
        return text

    out = "format('%s', %s)" % (format_out.replace("'", "''"), ", ".join(results))
    if out != text:
        log.debug("expression '%s' rewritten to '%s'", text, out)
    return out