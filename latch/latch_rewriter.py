"""
Rewrites registered dotted SDK calls into canonical `fetch(...)` expressions.

A call `<name>.<a>.<b>(<args>)` becomes a request to `<base>/<path>` with the
argument source re-embedded verbatim, so the engine still evaluates the
arguments at run time. Argument text may not contain `)`: nested calls and
parenthesized sub-expressions inside the argument list are not supported.
"""

import re
from collections.abc import Mapping
from typing import Iterable, Tuple, Union

from latch.latch_datatypes import CallPattern, Spec

MethodDescriptor = Union[str, Mapping]


def _method_call_and_path(method: MethodDescriptor) -> Tuple[str, str]:
    match method:
        case str():
            return method, method
        case Mapping():
            call = str(method['call'])
            path = method.get('path')
            return call, str(path if path is not None else call)
        case _:
            raise TypeError(f"Unsupported method descriptor: {method!r}")


def compile_patterns(name: str, methods: Iterable[MethodDescriptor]) -> Tuple[CallPattern, ...]:
    """Build the call patterns of one spec, longest URL path first."""
    patterns = []
    for method in methods or ():
        call, path = _method_call_and_path(method)
        dotted = r'\.'.join(re.escape(part) for part in call.split('.'))
        matcher = re.compile(rf'{re.escape(name)}\.{dotted}\s*\(([^)]*?)\)')
        url_path = path[1:] if path.startswith('/') else path
        patterns.append(CallPattern(matcher=matcher, url_path=url_path, call_path=call))
    # Stable sort keeps registration order among equal lengths.
    patterns.sort(key=lambda p: len(p.url_path), reverse=True)
    return tuple(patterns)


def fetch_expression(base: str, url_path: str, args: str) -> str:
    args = args.strip()
    if not args:
        return f'fetch("{base}/{url_path}")'
    return f'fetch("{base}/{url_path}?args="+encodeURIComponent(JSON.stringify([{args}])))'


def rewrite(code: str, specs: Iterable[Spec]) -> str:
    """Apply every spec, in registration order, to `code`."""
    result = code
    for spec in specs:
        for pattern in spec.patterns:
            result = pattern.matcher.sub(
                lambda m, p=pattern, base=spec.base: fetch_expression(base, p.url_path, m.group(1) or ''),
                result,
            )
    return result


__all__ = [
    "compile_patterns",
    "fetch_expression",
    "rewrite",
]
