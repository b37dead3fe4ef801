"""
Wire formats for HTTP response bodies and node-registry files.

Responses are decoded from JSON, YAML or XML into plain Python values so a
paused task can be resumed with them. Task results and request bodies are
always written as JSON.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Optional
import collections.abc

import yaml
import xmltodict

NODE_FILE_FORMATS = {'.json': 'json', '.yaml': 'yaml', '.yml': 'yaml'}


# --------------------------
# Helpers
# --------------------------

def _charset(content_type: Optional[str]) -> Optional[str]:
    m = re.search(r'charset\s*=\s*"?([\w.:-]+)', content_type or '', re.IGNORECASE)
    return m.group(1) if m else None


def _as_text(data: bytes | bytearray | str, content_type: Optional[str] = None) -> str:
    if isinstance(data, str):
        return data
    try:
        return bytes(data).decode(_charset(content_type) or 'utf-8', errors='replace')
    except LookupError:
        # Unknown charset label
        return bytes(data).decode('utf-8', errors='replace')


def _plain(obj: Any) -> Any:
    # xmltodict hands back its own mapping type; engines expect plain dicts
    if isinstance(obj, collections.abc.Mapping):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_plain(x) for x in obj]
    return obj


def _load_yaml(text: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def detect_format(content_type: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns 'json', 'yaml' or 'xml' from the Content-Type, falling back to
    sniffing `data_hint` when given.
    """
    ct = (content_type or "").lower()
    for fmt in ('json', 'yaml', 'xml'):
        if fmt in ct:
            return fmt
    hint = (data_hint or '').lstrip()[:1]
    if hint in ('{', '['):
        return 'json'
    if hint == '<':
        return 'xml'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                content_type: Optional[str] = None,
                fmt: Optional[str] = None) -> Any:
    """
    Decode a response body. Unknown formats and unparsable payloads come back
    as text.
    """
    text = _as_text(data, content_type)
    match fmt or detect_format(content_type, text):
        case 'json':
            try:
                return json.loads(text)
            except ValueError:
                # Labelled JSON but written as YAML
                return _load_yaml(text)
        case 'yaml':
            return _load_yaml(text)
        case 'xml':
            try:
                return _plain(xmltodict.parse(text))
            except Exception:
                # expat raises its own ExpatError hierarchy
                return text
        case _:
            return text


def to_json(value: Any, *, pretty: bool = True) -> str:
    """Render a task result or request body as JSON text."""
    return json.dumps(value, ensure_ascii=False, indent=2 if pretty else None)


def load_nodes(path: str | Path) -> Any:
    """Read a node-registry file (.json, .yaml or .yml)."""
    p = Path(path)
    fmt = NODE_FILE_FORMATS.get(p.suffix.lower())
    if fmt is None:
        raise ValueError(f"Unsupported node registry file: {p.name}")
    return deserialize(p.read_bytes(), fmt=fmt)


__all__ = [
    "deserialize",
    "to_json",
    "detect_format",
    "load_nodes",
]
