"""
Lexical normalization of multi-line scripts into a single statement stream.

This is a character scan, not a parser. It knows about quoted strings and
template literals only well enough to avoid inserting terminators inside them.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

# Scanner states
CODE = 'code'
SINGLE = 'single'
DOUBLE = 'double'
TEMPLATE = 'template'

_OPENERS = {"'": SINGLE, '"': DOUBLE, '`': TEMPLATE}
_CLOSERS = {SINGLE: "'", DOUBLE: '"', TEMPLATE: '`'}

RETURN_TOKEN = 'return '


@dataclass
class NormalizedScript:
    code: str
    keys: Optional[List[str]] = None


def insert_terminators(code: str) -> str:
    """
    Replace each newline outside string/template context with a `;`.

    No terminator is added when the text emitted so far is blank or already
    ends with `;`, `{` or `,`. Escapes are detected by a single-character
    lookback only, and `${...}` inside templates stays template context.
    """
    result = ''
    state = CODE
    prev = ''
    for char in code:
        if state == CODE:
            if char in _OPENERS:
                state = _OPENERS[char]
        elif char == _CLOSERS[state] and prev != '\\':
            state = CODE

        if state == CODE and char == '\n':
            tail = result.strip()
            if tail and not tail.endswith((';', '{', ',')):
                result += ';'
        else:
            result += char
        prev = char
    return result


def _split_return(text: str):
    i = text.rfind(RETURN_TOKEN)
    expr = text[i + len(RETURN_TOKEN):].rstrip(';').strip()
    return text[:i], expr


def shorthand_keys(expr: str) -> Optional[List[str]]:
    """Keys of a `{a, b}` shorthand object, or None for anything else.

    Any colon inside the braces disables detection, nested literals included.
    """
    if not (expr.startswith('{') and expr.endswith('}')):
        return None
    inner = expr[1:-1].strip()
    if not inner or ':' in inner:
        return None
    return [k.strip() for k in inner.split(',') if k.strip()]


def normalize(code: str) -> NormalizedScript:
    """
    Normalize script text for the execution engine.

    The last `return <expr>` is rewritten to a bare trailing expression; a
    shorthand object return becomes a positional array and its keys are
    reported so the result can be rebuilt later with `reconstruct`.
    """
    text = insert_terminators(code.strip())
    keys = None
    if RETURN_TOKEN in text:
        prefix, expr = _split_return(text)
        keys = shorthand_keys(expr)
        if keys is not None:
            expr = '[' + ', '.join(keys) + ']'
        text = prefix + expr
    return NormalizedScript(code=text, keys=keys)


def reconstruct(result: Any, keys: Optional[Sequence[str]]) -> Any:
    if not keys or not isinstance(result, (list, tuple)):
        return result
    return {k: (result[i] if i < len(result) else None) for i, k in enumerate(keys)}


def flatten(mapping: Any, keys: Optional[Sequence[str]]) -> Any:
    if not keys or not isinstance(mapping, dict):
        return mapping
    return [mapping.get(k) for k in keys]


__all__ = [
    "NormalizedScript",
    "insert_terminators",
    "shorthand_keys",
    "normalize",
    "reconstruct",
    "flatten",
]
