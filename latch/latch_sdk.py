"""
A runtime SDK over a node registry.

Instead of rewriting script text, `create_sdk` returns an object whose
attributes are nodes and whose node attributes are async operation calls:

    sdk = create_sdk(registry, nodes, "https://api.example.com")
    await sdk.slack.sendMessage({"channel": "#general"})

Each call performs `GET <endpoint>/<raw node name>/<operation path>`, adding
`?args=<JSON array>` when arguments are given.
"""

import json
from typing import Any, Dict, List, Optional

from latch.latch_datatypes import NodeEntry
from latch.latch_http import http_get
from latch.latch_registry import Registry, encode_uri_component


class NodeClient:
    def __init__(self, node: NodeEntry, base: str, config: Optional[Dict] = None):
        self.node = node
        self.base = base
        self._config = config

    def url_for(self, path: str, args: tuple) -> str:
        url = f"{self.base}/{path[1:] if path.startswith('/') else path}"
        if not args:
            return url
        payload = json.dumps(list(args), separators=(',', ':'), ensure_ascii=False)
        return f"{url}?args={encode_uri_component(payload)}"

    def __getattr__(self, name: str):
        op = self.node.method(name)
        if op is None:
            raise AttributeError(f"{self.node.sdk_name} has no operation {name!r}")

        async def call(*args):
            return await http_get(self.url_for(op.path, args), config=self._config)

        call.__name__ = op.call
        return call

    def __dir__(self):
        return [op.call for op in self.node.operations]


class SDK:
    def __init__(self, nodes: List[NodeEntry], endpoint: str, config: Optional[Dict] = None):
        self.endpoint = endpoint[:-1] if endpoint.endswith('/') else endpoint
        self.by_sdk_name = {n.sdk_name: n for n in nodes}
        self.by_raw_name = {n.raw_name: n for n in nodes}
        self._config = config

    def node(self, name: str) -> Optional[NodeClient]:
        """Look up a node by SDK name or raw name."""
        entry = self.by_sdk_name.get(name) or self.by_raw_name.get(name)
        if entry is None:
            return None
        return NodeClient(entry, f"{self.endpoint}/{encode_uri_component(entry.raw_name)}", self._config)

    def __getattr__(self, name: str):
        client = self.node(name)
        if client is None:
            raise AttributeError(f"No node named {name!r}")
        return client

    def __dir__(self):
        return list(self.by_sdk_name)


def create_sdk(registry: Registry, nodes: Any, endpoint: str, config: Optional[Dict] = None) -> SDK:
    """
    Ingest `nodes` into `registry` and build an SDK over them.

    Calling this repeatedly registers duplicate specs; ingest once at startup
    if that matters.
    """
    ingested = registry.use_nodes(nodes, endpoint)
    return SDK(ingested.nodes, endpoint, config)


__all__ = [
    "SDK",
    "NodeClient",
    "create_sdk",
]
