"""
Defines the core data types shared by the latch transformation and task layers.

Call specs and normalized nodes are immutable once built; a task result is the
structured outcome of a single `run` or `resume` call.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple


class TaskNotFound(KeyError):
    def __init__(self, task_id: str):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self):
        return f"Not found: {self.task_id}"


class EngineUnavailable(RuntimeError):
    """Raised when no execution engine can be resolved."""


# =================================================================
# Call specs
# =================================================================

@dataclass(frozen=True)
class CallPattern:
    matcher: re.Pattern
    url_path: str
    call_path: str


@dataclass(frozen=True)
class Spec:
    """A named set of dotted call patterns rewritten to requests under `base`."""
    name: str
    base: str
    patterns: Tuple[CallPattern, ...]


# =================================================================
# Normalized node schema
# =================================================================

@dataclass(frozen=True)
class Operation:
    raw: str
    call: str
    path: str
    label: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class NodeEntry:
    """
    A node record normalized into a safe SDK name and a set of operations.

    `schema` keeps the input record verbatim, including fields this
    package never reads.
    """
    raw_name: str
    sdk_name: str
    op_key: Optional[str]
    operations: Tuple[Operation, ...]
    action_params: List[Any]
    operation_selector: Optional[Dict[str, Any]]
    schema: Dict[str, Any]
    type: Optional[str] = None
    category: Optional[str] = None
    version: Any = None
    label: Optional[str] = None
    description: Optional[str] = None
    actions: List[Any] = field(default_factory=list)
    networks: List[Any] = field(default_factory=list)
    credentials: List[Any] = field(default_factory=list)
    input_parameters: List[Any] = field(default_factory=list)

    @property
    def methods(self) -> Tuple[Operation, ...]:
        # Operations double as the call-path -> url-path method table.
        return self.operations

    def method(self, call: str) -> Optional[Operation]:
        for op in self.operations:
            if op.call == call:
                return op
        return None


@dataclass
class IngestResult:
    registered: int = 0
    skipped: int = 0
    nodes: List[NodeEntry] = field(default_factory=list)


# =================================================================
# Task outcomes
# =================================================================

@dataclass
class TaskResult:
    """The structured result of a `run` or `resume` call."""
    id: str
    status: Literal['paused', 'done', 'error']
    fetch: Any = None
    result: Any = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        match self.status:
            case 'paused':
                return {'id': self.id, 'status': 'paused', 'fetch': self.fetch}
            case 'done':
                return {'id': self.id, 'status': 'done', 'result': self.result}
            case _:
                return {'id': self.id, 'status': 'error', 'error': self.error}
