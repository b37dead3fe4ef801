"""
Normalizes heterogeneous node records into `NodeEntry` objects.

Nodes describe their operations in one of four shapes, detected from the
first entry of `actions`:

  1. selector:   {"name": "action", "type": "options", "options": [{"name": ...}, ...]}
  2. operations: [{"operation": "send", "label": ...}, ...]
  3. names:      [{"name": "send", "label": ...}, ...]
  4. no actions: a single implicit "run" operation
"""

import re
from typing import Any, Dict, List, Optional, Set

from latch.latch_datatypes import NodeEntry, Operation

OP_SELECTOR_FALLBACK = 'operation'

# Script-language words that may not be used as call names.
RESERVED_WORDS = frozenset({
    'break', 'case', 'catch', 'class', 'const', 'continue', 'debugger', 'default', 'delete',
    'do', 'else', 'export', 'extends', 'finally', 'for', 'function', 'if', 'import', 'in',
    'instanceof', 'new', 'return', 'super', 'switch', 'this', 'throw', 'try', 'typeof',
    'var', 'void', 'while', 'with', 'yield', 'let', 'enum', 'await', 'implements',
    'package', 'protected', 'static', 'interface', 'private', 'public',
})

_IDENTIFIER_RE = re.compile(r'[A-Za-z_$][A-Za-z0-9_$]*')
_SEPARATOR_RE = re.compile(r'[^A-Za-z0-9]+')


def is_reserved_word(s: str) -> bool:
    return s in RESERVED_WORDS


def is_valid_identifier(s: str) -> bool:
    return bool(_IDENTIFIER_RE.fullmatch(s)) and not is_reserved_word(s)


def to_safe_identifier(raw: Any, used: Optional[Set[str]] = None) -> str:
    """
    Convert an arbitrary string into a lowerCamelCase identifier.

    `used` is the caller's collision scope; the returned name is added to it,
    with a `_2`, `_3`, ... suffix when the base name is already taken.
    """
    if used is None:
        used = set()
    parts = [p for p in _SEPARATOR_RE.split(str(raw)) if p]

    out = parts[0] if parts else 'op'
    for p in parts[1:]:
        out += p[0].upper() + p[1:]

    if out[0].isdigit():
        out = '_' + out
    if not re.match(r'[A-Za-z_$]', out):
        out = '_' + re.sub(r'[^A-Za-z0-9_$]', '_', out)
    if is_reserved_word(out):
        out = '_' + out

    if out not in used:
        used.add(out)
        return out
    i = 2
    while f"{out}_{i}" in used:
        i += 1
    unique = f"{out}_{i}"
    used.add(unique)
    return unique


def call_name(raw: str, used: Set[str]) -> str:
    """Keep valid, unused identifiers as-is; derive a safe one otherwise."""
    if is_valid_identifier(raw) and raw not in used:
        used.add(raw)
        return raw
    return to_safe_identifier(raw, used)


def _implicit_run(node: Dict[str, Any]) -> Operation:
    return Operation(raw='run', call='run', path='run', label='Run', description=node.get('description'))


def _operations_from(entries: List[Any], field: str) -> List[Operation]:
    used: Set[str] = set()
    operations = []
    for entry in entries:
        raw = entry.get(field) if isinstance(entry, dict) else None
        raw = '' if raw is None else str(raw)
        if not raw:
            continue
        operations.append(Operation(
            raw=raw,
            call=call_name(raw, used),
            # URL path segments use the raw operation id
            path=raw,
            label=entry.get('label'),
            description=entry.get('description'),
        ))
    return operations


def derive_operations(node: Dict[str, Any]) -> Dict[str, Any]:
    """Detect the operation shape of `node`; see the module docstring."""
    actions = node.get('actions')
    actions = actions if isinstance(actions, list) else []
    if not actions:
        return {
            'op_key': None,
            'operations': [_implicit_run(node)],
            'action_params': [],
            'operation_selector': None,
        }

    first = actions[0]
    if not isinstance(first, dict):
        first = {}

    if first.get('type') and isinstance(first.get('options'), list) and first.get('name'):
        # The selector stays in action_params; the SDK method implies its value.
        return {
            'op_key': str(first['name']),
            'operations': _operations_from(first['options'], 'name'),
            'action_params': actions,
            'operation_selector': first,
        }

    if 'operation' in first:
        return {
            'op_key': OP_SELECTOR_FALLBACK,
            'operations': _operations_from(actions, 'operation'),
            'action_params': [],
            'operation_selector': None,
        }

    if 'name' in first:
        return {
            'op_key': OP_SELECTOR_FALLBACK,
            'operations': _operations_from(actions, 'name'),
            'action_params': [],
            'operation_selector': None,
        }

    return {
        'op_key': None,
        'operations': [_implicit_run(node)],
        'action_params': actions,
        'operation_selector': None,
    }


def _list_field(node: Dict[str, Any], key: str) -> List[Any]:
    value = node.get(key)
    return value if isinstance(value, list) else []


def normalize_node(node: Any) -> Optional[NodeEntry]:
    """Normalize one node record; returns None when it has no usable name."""
    if not isinstance(node, dict):
        return None
    raw_name = node.get('name')
    raw_name = '' if raw_name is None else str(raw_name)
    if not raw_name:
        return None

    sdk_name = raw_name if is_valid_identifier(raw_name) else to_safe_identifier(raw_name)
    derived = derive_operations(node)

    return NodeEntry(
        raw_name=raw_name,
        sdk_name=sdk_name,
        op_key=derived['op_key'],
        operations=tuple(derived['operations']),
        action_params=derived['action_params'],
        operation_selector=derived['operation_selector'],
        schema=node,
        type=node.get('type'),
        category=node.get('category'),
        version=node.get('version'),
        label=node.get('label'),
        description=node.get('description'),
        actions=_list_field(node, 'actions'),
        networks=_list_field(node, 'networks'),
        credentials=_list_field(node, 'credentials'),
        input_parameters=_list_field(node, 'inputParameters'),
    )


__all__ = [
    "RESERVED_WORDS",
    "is_reserved_word",
    "is_valid_identifier",
    "to_safe_identifier",
    "call_name",
    "derive_operations",
    "normalize_node",
]
