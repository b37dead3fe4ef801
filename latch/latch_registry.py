"""
The call-spec and node registry.

A `Registry` is owned explicitly by its host (or test) and handed to the
rewriter and task manager. Registration is meant to happen at setup time,
before concurrent reads begin; nothing here is locked.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

from latch.latch_datatypes import IngestResult, NodeEntry, Spec
from latch.latch_rewriter import MethodDescriptor, compile_patterns, rewrite
from latch.latch_schema import normalize_node

logger = logging.getLogger("latch.registry")

# Characters left unescaped by JavaScript's encodeURIComponent, besides alphanumerics and "-_.~".
_URI_COMPONENT_SAFE = "!*'()"


def encode_uri_component(s: str) -> str:
    return quote(str(s), safe=_URI_COMPONENT_SAFE)


def _strip_trailing_slash(endpoint: str) -> str:
    return endpoint[:-1] if endpoint.endswith('/') else endpoint


class Registry:
    """Ordered call specs plus normalized nodes keyed by SDK and raw name."""

    def __init__(self):
        self.specs: List[Spec] = []
        self.by_sdk_name: Dict[str, NodeEntry] = {}
        self.by_raw_name: Dict[str, NodeEntry] = {}

    def use(self, name: str, methods: Iterable[MethodDescriptor], endpoint: str) -> Spec:
        """
        Register a call spec: `<name>.<method>(args)` is rewritten to a request
        under `endpoint`. Methods are dotted call paths or `{call, path}` mappings.
        """
        spec = Spec(name=name, base=_strip_trailing_slash(endpoint), patterns=compile_patterns(name, methods))
        self.specs.append(spec)
        logger.debug("registered spec %s at %s (%d patterns)", name, spec.base, len(spec.patterns))
        return spec

    def use_nodes(self, nodes: Any, endpoint: str, *, include_non_action_nodes: bool = True) -> IngestResult:
        """
        Register every node of a node-registry array.

        Each node is registered under its safe SDK name and routed to
        `<endpoint>/<raw name>`. Ingesting the same node twice appends a second
        spec rather than replacing the first.
        """
        if not isinstance(nodes, list):
            raise TypeError("use_nodes: expected a list of node records")
        base = _strip_trailing_slash(endpoint)
        results = IngestResult()

        for node in nodes:
            entry = normalize_node(node)
            if entry is None:
                results.skipped += 1
                continue
            if not include_non_action_nodes and entry.type != 'action':
                results.skipped += 1
                continue

            self.use(
                entry.sdk_name,
                [{'call': op.call, 'path': op.path} for op in entry.methods],
                f"{base}/{encode_uri_component(entry.raw_name)}",
            )
            self.by_sdk_name[entry.sdk_name] = entry
            self.by_raw_name[entry.raw_name] = entry
            results.registered += 1
            results.nodes.append(entry)

        logger.debug("ingested nodes: %d registered, %d skipped", results.registered, results.skipped)
        return results

    def lookup(self, name: str) -> Optional[NodeEntry]:
        return self.by_sdk_name.get(name) or self.by_raw_name.get(name)

    def snapshot(self) -> Dict[str, Dict[str, NodeEntry]]:
        """A copy of the node lookup maps, for editors and introspection."""
        return {
            'by_sdk_name': dict(self.by_sdk_name),
            'by_raw_name': dict(self.by_raw_name),
        }

    def rewrite(self, code: str) -> str:
        return rewrite(code, self.specs)


__all__ = [
    "Registry",
    "encode_uri_component",
]
