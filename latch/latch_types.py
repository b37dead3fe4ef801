"""
Generates TypeScript declarations for the SDK exposed to scripts.

The output describes, per node, the parameter record of each operation and an
aggregate `SDK` interface, for editor autocomplete. Large registries produce
large documents.
"""

import json
import re
from textwrap import dedent
from typing import Any, Dict, List

import pystache

from latch.latch_datatypes import NodeEntry
from latch.latch_schema import normalize_node

# Larger option lists degrade to `string` to bound the output size.
MAX_UNION_OPTIONS = 250
DESCRIPTION_LIMIT = 120

_PREAMBLE = """
    /* eslint-disable */
    // AUTO-GENERATED. DO NOT EDIT BY HAND.

    export type JSONValue = null | boolean | number | string | JSONValue[] | { [k: string]: JSONValue };
    export type AnyRecord = Record<string, any>;

    export interface FetchLike { (input: RequestInfo | URL, init?: RequestInit): Promise<Response>; }
"""

_SDK_INTERFACE = """
    export interface SDK {
    {{#nodes}}
      {{sdk_name}}: {
    {{#methods}}
        {{call}}(params?: Nodes.{{sdk_name}}.{{call}}Params): Promise<any>;
    {{/methods}}
      };
    {{/nodes}}
    }
"""


def _render(template: str, context: Dict[str, Any]) -> str:
    text = dedent(template)
    if text.startswith("\n"):
        text = text[1:]
    renderer = pystache.Renderer(escape=lambda u: u)
    return renderer.render(text, context)


def _quote(value: Any) -> str:
    return json.dumps(str(value), ensure_ascii=False)


def _literal(value: Any) -> str:
    # numbers and booleans stay literal types; only strings are quoted
    return json.dumps(value if value is not None else '', ensure_ascii=False)


def _is_optional(param: Dict[str, Any]) -> bool:
    return bool(param.get('optional')) or param.get('required') is False


class TypePrinter:
    """Maps node parameter schemas to TypeScript type expressions."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def _create_handlers(self):
        return {
            'string': lambda p: 'string',
            'code': lambda p: 'string',
            'number': lambda p: 'number',
            'boolean': lambda p: 'boolean',
            'date': lambda p: 'string | Date',
            'json': lambda p: 'AnyRecord | JSONValue',
            'object': lambda p: 'AnyRecord',
            'file': lambda p: 'Blob | File | string',
            'string[]': lambda p: 'string[]',
            'asyncOptions': lambda p: 'string',
            'options': self._type_options,
            'array': self._type_array,
            'collection': self._type_collection,
        }

    def type_for(self, param: Any) -> str:
        if not isinstance(param, dict):
            return 'any'
        handler = self._handlers.get(param.get('type'))
        # Unknown/custom types
        if handler is None:
            return 'any'
        return handler(param)

    def _type_options(self, param):
        opts = param.get('options')
        names = []
        for opt in opts if isinstance(opts, list) else []:
            name = opt.get('name') if isinstance(opt, dict) else None
            if name and name not in names:
                names.append(name)
        if not names or len(names) > MAX_UNION_OPTIONS:
            return 'string'
        return ' | '.join(_quote(n) for n in names)

    def _type_array(self, param):
        # { type: 'array', items: { type: ... } }
        items = param.get('items')
        if isinstance(items, dict) and items.get('type'):
            return f"Array<{self.type_for(items)}>"
        # { type: 'array', array: [ {name, type, ...}, ... ] }
        entries = param.get('array')
        if isinstance(entries, list):
            fields: Dict[str, str] = {}
            for f in entries:
                name = f.get('name') if isinstance(f, dict) else None
                if not name:
                    continue
                ft = self.type_for(f)
                fields[name] = f"{fields[name]} | {ft}" if name in fields else ft
            body = ' '.join(f"{_quote(n)}?: {t};" for n, t in fields.items())
            return f"Array<{{ {body} }}>"
        return 'any[]'

    def _type_collection(self, param):
        opts = param.get('options')
        if not isinstance(opts, list):
            return 'AnyRecord'
        lines = []
        for f in opts:
            if not isinstance(f, dict) or not f.get('name'):
                continue
            sep = '?:' if _is_optional(f) else ':'
            lines.append(f"{_quote(f['name'])}{sep} {self.type_for(f)};")
        return f"{{ {' '.join(lines)} }}"


def include_for_operation(param: Dict[str, Any], op_key, op_raw: str) -> bool:
    """Apply a parameter's `show`/`hide` rule keyed by `actions.<op_key>`."""
    if not op_key:
        return True
    key = f"actions.{op_key}"
    show = param.get('show')
    if isinstance(show, dict) and isinstance(show.get(key), list):
        return str(op_raw) in [str(v) for v in show[key]]
    hide = param.get('hide')
    if isinstance(hide, dict) and isinstance(hide.get(key), list):
        return str(op_raw) not in [str(v) for v in hide[key]]
    return True


def _is_selector_shape(node: NodeEntry) -> bool:
    first = node.actions[0] if node.actions else None
    return isinstance(first, dict) and bool(first.get('type')) and isinstance(first.get('options'), list)


def operation_fields(node: NodeEntry, op_raw: str, printer: TypePrinter) -> List[Dict[str, Any]]:
    """
    The merged parameter fields of one operation.

    Fields come from secondary action params and input params (both filtered
    per operation), networks (always optional) and credentials (optional
    unless required). A name seen more than once is required if any
    occurrence is, and its type is the union of all occurrences.
    """
    secondary = node.action_params[1:] if _is_selector_shape(node) else node.action_params
    sources = [
        (secondary, True, None),
        (node.input_parameters, True, None),
        (node.networks, False, lambda p: True),
        (node.credentials, False, lambda p: not (p.get('required') is True) or bool(p.get('optional'))),
    ]

    by_name: Dict[str, Dict[str, Any]] = {}
    for params, filtered, optional_rule in sources:
        for p in params:
            if not isinstance(p, dict) or not p.get('name'):
                continue
            if filtered and not include_for_operation(p, node.op_key, op_raw):
                continue
            field = {
                'name': p['name'],
                'optional': optional_rule(p) if optional_rule else _is_optional(p),
                'type': printer.type_for(p),
                'desc': p.get('description') or p.get('label'),
            }
            prev = by_name.get(field['name'])
            if prev is None:
                by_name[field['name']] = field
            else:
                by_name[field['name']] = {
                    'name': field['name'],
                    'optional': prev['optional'] and field['optional'],
                    'type': f"{prev['type']} | {field['type']}",
                    'desc': prev['desc'] or field['desc'],
                }
    return list(by_name.values())


def _node_namespace(node: NodeEntry, printer: TypePrinter) -> List[str]:
    lines = [
        f"  export namespace {node.sdk_name} {{",
        f"    export type RawNodeName = {_quote(node.raw_name)};",
        f"    export type NodeType = {_quote(node.type if node.type is not None else 'action')};",
        f"    export type Category = {_quote(node.category if node.category is not None else '')};",
        f"    export type Version = {_literal(node.version)};",
        "",
    ]
    calls = ' | '.join(_quote(op.call) for op in node.methods) or 'never'
    lines.append(f"    export type Operations = {calls};")
    lines.append("")

    for op in node.operations:
        lines.append(f"    export interface {op.call}Params {{")
        for f in operation_fields(node, op.raw, printer):
            if f['desc']:
                desc = re.sub(r'\s+', ' ', str(f['desc']))[:DESCRIPTION_LIMIT]
                lines.append(f"      /** {desc} */")
            sep = '?:' if f['optional'] else ':'
            lines.append(f"      {_quote(f['name'])}{sep} {f['type']};")
        lines.append("    }")
        lines.append("")

    lines.append("  }")
    return lines


def generate_types(nodes: Any) -> str:
    """Render the declaration document for a node-registry array."""
    if not isinstance(nodes, list):
        raise TypeError("generate_types: expected a list of node records")
    entries = [e for e in (normalize_node(n) for n in nodes) if e is not None]
    printer = TypePrinter()

    lines = [dedent(_PREAMBLE).strip("\n"), "", "export namespace Nodes {"]
    for node in entries:
        lines.extend(_node_namespace(node, printer))
    lines.append("}")
    lines.append("")
    lines.append(_render(_SDK_INTERFACE, {
        'nodes': [
            {'sdk_name': n.sdk_name, 'methods': [{'call': m.call} for m in n.methods]}
            for n in entries
        ],
    }))
    return "\n".join(lines)


__all__ = [
    "MAX_UNION_OPTIONS",
    "TypePrinter",
    "include_for_operation",
    "operation_fields",
    "generate_types",
]
