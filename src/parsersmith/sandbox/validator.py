# src/parsersmith/sandbox/validator.py — v1
"""Static gate for generated parser code.

Both checks work on the syntax tree only and never execute the code.

``check_syntax`` confirms the function body parses once wrapped as
``def parse(text): ...``. ``validate_code`` is an allow-list: every name the
body reads must be bound inside it, be ``text``, be a safe builtin or be one
of the injected modules (``re``, ``math``, ``json``, ``datetime``). An injected
module may only be used as ``module.member`` with a member from its
allow-list, so it cannot be aliased or walked into other modules. Imports,
scope escapes, private attributes, frame introspection and long encoded
payloads are rejected.
"""

from __future__ import annotations

import ast
import logging

from parsersmith.core.errors import CodeSyntaxError, CodeValidationError
from parsersmith.sandbox.runner import (
    INJECTED_MODULES,
    MODULE_MEMBERS,
    SAFE_BUILTIN_NAMES,
    wrap_parser_code,
)

logger = logging.getLogger(__name__)

MAX_STRING_LITERAL = 10_000

ALLOWED_NAMES = SAFE_BUILTIN_NAMES | frozenset(INJECTED_MODULES) | {"text"}

DENIED_NAMES = frozenset({
    # dynamic code
    "eval", "exec", "compile", "__import__", "breakpoint",
    # reflection
    "getattr", "setattr", "delattr", "hasattr", "globals", "locals", "vars",
    "dir", "type", "object", "super", "classmethod", "staticmethod", "property",
    "memoryview", "help",
    # I/O and process control
    "open", "input", "print", "exit", "quit",
    "os", "sys", "subprocess", "socket", "shutil", "pathlib", "io",
    "importlib", "builtins", "ctypes", "urllib", "http", "requests", "signal",
    "threading", "multiprocessing", "asyncio", "pickle", "marshal",
})

DENIED_ATTRIBUTES = frozenset({
    # frame / code introspection
    "gi_frame", "gi_code", "cr_frame", "cr_code", "ag_frame", "ag_code",
    "f_globals", "f_locals", "f_builtins", "f_back", "f_code",
    "tb_frame", "tb_next", "mro",
    # module attributes leading outside the sandbox
    "open", "codecs", "sys", "os", "io", "system", "popen",
    "enum", "bltns", "builtins", "functools", "copyreg", "decoder", "encoder",
    "scanner", "types", "operator", "inspect", "sre_compile", "sre_parse",
    "importlib", "modules",
})

_DISALLOWED_NODES: dict[type, str] = {
    ast.Import: "import statements are not allowed",
    ast.ImportFrom: "import statements are not allowed",
    ast.Global: "global declarations are not allowed",
    ast.Nonlocal: "nonlocal declarations are not allowed",
    ast.ClassDef: "class definitions are not allowed",
    ast.AsyncFunctionDef: "async functions are not allowed",
    ast.Await: "await is not allowed",
}


def check_syntax(code: str) -> None:
    """Raise CodeSyntaxError unless the wrapped body parses."""
    _parse(code)


def validate_code(code: str) -> None:
    """Raise CodeValidationError listing every disallowed construct."""
    violations = find_violations(code)
    if violations:
        logger.warning("Code validation failed: %s", violations)
        raise CodeValidationError(violations)


def find_violations(code: str) -> list[str]:
    """Return human-readable violations, empty when the code is acceptable.

    Raises:
        CodeSyntaxError: The code does not parse.
    """
    tree = _parse(code)
    bound = _bound_names(tree)
    violations: list[str] = []

    def report(node: ast.AST, message: str) -> None:
        lineno = getattr(node, "lineno", None)
        where = f"line {lineno - 1}: " if lineno and lineno > 1 else ""
        violations.append(f"{where}{message}")

    qualified = {
        id(node.value)
        for node in ast.walk(tree)
        if isinstance(node, ast.Attribute)
        and isinstance(node.value, ast.Name)
        and node.value.id in INJECTED_MODULES
    }

    for node in ast.walk(tree):
        for node_type, message in _DISALLOWED_NODES.items():
            if isinstance(node, node_type):
                report(node, message)

        if isinstance(node, ast.Name):
            if node.id.startswith("__"):
                report(node, f"dunder name '{node.id}' is not allowed")
            elif node.id in DENIED_NAMES:
                report(node, f"name '{node.id}' is not allowed")
            elif node.id in INJECTED_MODULES:
                if isinstance(node.ctx, ast.Load) and id(node) not in qualified:
                    report(node, f"module '{node.id}' may only be used as {node.id}.<member>")
            elif isinstance(node.ctx, ast.Load) and node.id not in bound | ALLOWED_NAMES:
                report(node, f"name '{node.id}' is not defined or not allowed")

        elif isinstance(node, ast.Attribute):
            owner = node.value.id if isinstance(node.value, ast.Name) else None
            if owner in INJECTED_MODULES:
                if node.attr not in MODULE_MEMBERS[owner]:
                    report(node, f"'{owner}.{node.attr}' is not allowed")
            elif node.attr.startswith("_"):
                report(node, f"private attribute '{node.attr}' is not allowed")
            elif node.attr in DENIED_ATTRIBUTES or node.attr in DENIED_NAMES:
                report(node, f"attribute '{node.attr}' is not allowed")

        elif isinstance(node, ast.Constant) and isinstance(node.value, (str, bytes)):
            if len(node.value) > MAX_STRING_LITERAL:
                report(node, "suspiciously long string literal")

    for name in sorted(bound & INJECTED_MODULES.keys()):
        violations.append(f"module '{name}' cannot be rebound")

    return violations


def _parse(code: str) -> ast.Module:
    if not code or not code.strip():
        raise CodeSyntaxError("Parser code is empty")
    try:
        return ast.parse(wrap_parser_code(code), filename="<parser>")
    except (SyntaxError, ValueError) as e:
        raw_lineno = getattr(e, "lineno", None)
        lineno = raw_lineno - 1 if raw_lineno else None
        msg = getattr(e, "msg", None) or str(e)
        location = f" at line {lineno}" if lineno else ""
        raise CodeSyntaxError(f"Syntax error{location}: {msg}", lineno=lineno) from e


def _bound_names(tree: ast.AST) -> set[str]:
    """Names bound anywhere in the tree (flow-insensitive)."""
    bound: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and isinstance(node.ctx, (ast.Store, ast.Del)):
            bound.add(node.id)
        elif isinstance(node, ast.arg):
            bound.add(node.arg)
        elif isinstance(node, ast.FunctionDef):
            bound.add(node.name)
        elif isinstance(node, ast.ExceptHandler) and node.name:
            bound.add(node.name)
        elif isinstance(node, (ast.MatchAs, ast.MatchStar)) and node.name:
            bound.add(node.name)
        elif isinstance(node, ast.MatchMapping) and node.rest:
            bound.add(node.rest)
    return bound
