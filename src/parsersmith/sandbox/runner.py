# src/parsersmith/sandbox/runner.py — v1
"""Standalone parser runner for the local execution backend.

Launched as ``python -I runner.py`` in a fresh child process. Standard library
only: the child never imports the parsersmith package.

Protocol:
    stdin:  {"code": str, "text": str, "memory_limit_mb": int, "cpu_limit_s": int}
    stdout: OUTPUT_START + {"ok": true, "result": [...]} + OUTPUT_END
        or  OUTPUT_START + {"ok": false, "kind": str, "error": str} + OUTPUT_END
"""

import builtins
import datetime
import json
import math
import re
import sys
import textwrap
import types

OUTPUT_START = "___PARSER_JSON_START___"
OUTPUT_END = "___PARSER_JSON_END___"
PARSER_FUNCTION_NAME = "parse"

SAFE_BUILTIN_NAMES = frozenset({
    "abs", "all", "any", "bool", "chr", "dict", "divmod", "enumerate",
    "filter", "float", "frozenset", "int", "isinstance", "iter", "len",
    "list", "map", "max", "min", "next", "ord", "range", "repr", "reversed",
    "round", "set", "slice", "sorted", "str", "sum", "tuple", "zip",
    # exceptions
    "ArithmeticError", "AttributeError", "Exception", "IndexError",
    "KeyError", "LookupError", "OverflowError", "StopIteration",
    "TypeError", "ValueError", "ZeroDivisionError",
})

INJECTED_MODULES = {"re": re, "math": math, "json": json, "datetime": datetime}

# Public members parser code may reach on each injected module
MODULE_MEMBERS = {
    "re": frozenset({
        "compile", "search", "match", "fullmatch", "findall", "finditer", "sub",
        "subn", "split", "escape", "error", "Pattern", "Match",
        "IGNORECASE", "I", "MULTILINE", "M", "DOTALL", "S", "VERBOSE", "X", "ASCII", "A",
    }),
    "math": frozenset({
        "ceil", "floor", "trunc", "fabs", "fsum", "isclose", "isfinite", "isinf",
        "isnan", "copysign", "sqrt", "pow", "exp", "log", "log10", "prod",
        "pi", "e", "inf", "nan",
    }),
    "json": frozenset({"loads", "dumps", "JSONDecodeError"}),
    "datetime": frozenset({
        "datetime", "date", "time", "timedelta", "timezone", "MINYEAR", "MAXYEAR",
    }),
}

# C code in the injected modules imports these lazily (datetime.strptime)
_IMPORTABLE = frozenset(INJECTED_MODULES) | {"_strptime", "time", "calendar", "locale"}


def wrap_parser_code(code):
    """Turn a parser function body into ``def parse(text): ...``."""
    body = textwrap.indent(textwrap.dedent(code), "    ")
    return "def " + PARSER_FUNCTION_NAME + "(text):\n" + body + "\n"


def module_views():
    """Namespaces exposing only the allowed members of each injected module."""
    return {
        name: types.SimpleNamespace(
            **{m: getattr(module, m) for m in MODULE_MEMBERS[name] if hasattr(module, m)}
        )
        for name, module in INJECTED_MODULES.items()
    }


def _guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
    if level or name.partition(".")[0] not in _IMPORTABLE:
        raise ImportError(f"import of {name!r} is not allowed")
    return builtins.__import__(name, globals, locals, fromlist, level)


def run_parser(code, text):
    """Execute a parser body against ``text`` with a restricted global scope."""
    safe_builtins = {name: getattr(builtins, name) for name in SAFE_BUILTIN_NAMES}
    safe_builtins["__import__"] = _guarded_import
    scope = {"__builtins__": safe_builtins}
    scope.update(module_views())
    exec(compile(wrap_parser_code(code), "<parser>", "exec"), scope)  # noqa: S102
    return scope[PARSER_FUNCTION_NAME](text)


def execute_request(request):
    """Run one request and return the serialized response object."""
    try:
        result = run_parser(request["code"], request["text"])
    except (MemoryError, RecursionError) as e:
        return _response(False, kind="resource_limit", error=type(e).__name__)
    except Exception as e:  # noqa: BLE001 - any parser failure is reported to the parent
        return _response(False, kind="runtime", error=f"{type(e).__name__}: {e}")

    try:
        return json.dumps({"ok": True, "result": result})
    except (TypeError, ValueError) as e:
        return _response(False, kind="invalid_output", error=f"Output is not JSON serializable: {e}")


def _response(ok, kind, error):
    return json.dumps({"ok": ok, "kind": kind, "error": error})


def _apply_limits(memory_limit_mb, cpu_limit_s):
    """Best-effort POSIX rlimits. Platforms without them run unlimited."""
    try:
        import resource
    except ImportError:
        return

    if memory_limit_mb:
        limit = int(memory_limit_mb) * 1024 * 1024
        try:
            resource.setrlimit(resource.RLIMIT_AS, (limit, limit))
        except (ValueError, OSError):
            # RLIMIT_AS is not enforceable on some kernels (e.g. macOS)
            pass

    if cpu_limit_s:
        seconds = max(int(math.ceil(cpu_limit_s)), 1)
        resource.setrlimit(resource.RLIMIT_CPU, (seconds, seconds + 1))


def main():
    request = json.loads(sys.stdin.read())
    _apply_limits(request.get("memory_limit_mb"), request.get("cpu_limit_s"))
    sys.stdout.write(OUTPUT_START + execute_request(request) + OUTPUT_END + "\n")
    sys.stdout.flush()


if __name__ == "__main__":
    main()
