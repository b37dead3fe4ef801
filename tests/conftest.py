import json
import re

import pytest

from latch.latch_registry import Registry
from latch.latch_runtime import ExecutionEngine, InMemoryStorage, TaskManager

FETCH_RE = re.compile(r'(?:const|let|var)\s+(\w+)\s*=\s*await\s+fetch\("([^"]*)"\)$')


class FakeEngine(ExecutionEngine):
    """
    A tiny sequential engine for normalized scripts of the form

        const a = await fetch("url");...;throw <msg>;[a, b]

    It pauses on each fetch assignment, keeps the program counter in its
    continuation state and only knows the bindings it was seeded with.
    """
    instances = []

    def __init__(self):
        super().__init__()
        self.initialized = False
        self.disposed = 0
        self.executed = []
        FakeEngine.instances.append(self)

    async def initialize(self):
        self.initialized = True

    async def execute_code(self, code):
        self.executed.append(code)
        self.paused = {"code": code, "variables": {}}
        return self._step(code, 0)

    async def resume_execution(self, state, data):
        self.variables[state["target"]] = data
        return self._step(state["code"], state["pc"] + 1)

    def dispose(self):
        self.disposed += 1

    def _step(self, code, pc):
        stmts = [s.strip() for s in code.split(";") if s.strip()]
        for i in range(pc, len(stmts)):
            s = stmts[i]
            m = FETCH_RE.match(s)
            if m:
                self.paused = {**(self.paused or {}), "variables": dict(self.variables)}
                return {
                    "type": "pause",
                    "state": {"code": code, "pc": i, "target": m.group(1)},
                    "fetch_request": {"url": m.group(2)},
                }
            if s.startswith("throw "):
                return {"type": "error", "error": s[len("throw "):]}
            if i == len(stmts) - 1:
                return {"type": "complete", "result": self._value(s)}
        return {"type": "complete", "result": None}

    def _value(self, expr):
        if expr.startswith("[") and expr.endswith("]"):
            return [self._value(p.strip()) for p in expr[1:-1].split(",") if p.strip()]
        if expr in self.variables:
            return self.variables[expr]
        return json.loads(expr)


class RecordingStorage(InMemoryStorage):
    def __init__(self):
        super().__init__()
        self.calls = []

    async def get(self, task_id):
        self.calls.append(("get", task_id))
        return await super().get(task_id)

    async def set(self, task_id, value):
        self.calls.append(("set", task_id))
        await super().set(task_id, value)

    async def delete(self, task_id):
        self.calls.append(("delete", task_id))
        await super().delete(task_id)


@pytest.fixture(autouse=True)
def _reset_engines():
    FakeEngine.instances.clear()
    yield
    FakeEngine.instances.clear()


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def registry():
    return Registry()


@pytest.fixture
def manager(registry, storage):
    return TaskManager(registry=registry, storage=storage, engine_factory=FakeEngine)


@pytest.fixture
def engines():
    return FakeEngine.instances
