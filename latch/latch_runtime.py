# latch_runtime.py

import os
import time
import uuid
import inspect
import logging
import importlib
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from latch.latch_datatypes import TaskResult, TaskNotFound, EngineUnavailable
from latch.latch_normalizer import normalize, reconstruct
from latch.latch_registry import Registry

logger = logging.getLogger("latch.runtime")

ENGINE_ENV = "LATCH_ENGINE"


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


# ===================================================================
# 1. Collaborator Contracts
# ===================================================================

class ExecutionEngine(ABC):
    """
    The base class for the suspend/resume engine that executes normalized code.

    The engine halts at a `fetch(...)` expression and reports the pending
    request with an opaque continuation `state`. Results are mappings:

      {"type": "pause", "state": ..., "fetch_request": {"url": ..., ...}}
      {"type": "complete", "result": ...}
      {"type": "error", "error": ...}

    `paused` holds the record of the current suspension, including an ordered
    `variables` mapping; `variables` is the binding table seeded before a resume.
    """
    def __init__(self):
        self.paused: Optional[Dict[str, Any]] = None
        self.variables: Dict[str, Any] = {}

    @abstractmethod
    def initialize(self): raise NotImplementedError
    @abstractmethod
    def execute_code(self, code: str): raise NotImplementedError
    @abstractmethod
    def resume_execution(self, state: Any, data: Any): raise NotImplementedError
    @abstractmethod
    def dispose(self): raise NotImplementedError


class TaskStorage(ABC):
    """Key/value store for paused task snapshots. Last write wins per key."""

    @abstractmethod
    def get(self, task_id: str): raise NotImplementedError
    @abstractmethod
    def set(self, task_id: str, value: Any): raise NotImplementedError
    @abstractmethod
    def delete(self, task_id: str): raise NotImplementedError


class InMemoryStorage(TaskStorage):
    """A tiny async in-process store. Swap for Redis/S3/etc with the same interface."""

    def __init__(self):
        self.data: Dict[str, Any] = {}

    async def get(self, task_id: str):
        return self.data.get(task_id)

    async def set(self, task_id: str, value: Any):
        self.data[task_id] = value

    async def delete(self, task_id: str):
        self.data.pop(task_id, None)


def load_engine_factory(path: Optional[str] = None) -> Callable[[], ExecutionEngine]:
    """Resolve an engine class or factory from a `module:attribute` path (default: $LATCH_ENGINE)."""
    path = path or os.environ.get(ENGINE_ENV)
    if not path:
        raise EngineUnavailable(f"No execution engine configured; set {ENGINE_ENV}=module:attribute")
    module_name, _, attr = path.partition(":")
    if not attr:
        raise EngineUnavailable(f"Invalid engine path {path!r}; expected module:attribute")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise EngineUnavailable(f"Cannot load execution engine {path!r}: {e}") from e


# ===================================================================
# 2. Snapshots
# ===================================================================

def _snapshot(code: str, keys, state: Any, paused: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    paused = dict(paused or {})
    variables = paused.get("variables") or {}
    paused["variables"] = [[k, v] for k, v in variables.items()]
    return {"code": code, "keys": keys, "state": state, "paused": paused}


def _restore_paused(stored: Dict[str, Any]) -> Dict[str, Any]:
    paused = dict(stored.get("paused") or {})
    paused["variables"] = {k: v for k, v in paused.get("variables") or []}
    return paused


def new_task_id() -> str:
    return f"t-{int(time.time() * 1000)}-{uuid.uuid4().hex[:11]}"


# ===================================================================
# 3. Task Lifecycle
# ===================================================================

class TaskManager:
    """
    Runs scripts on the execution engine and persists them while paused.

    A task lives in storage only while it is paused on a network response.
    Concurrent `resume` calls for the same id are not serialized here: the
    last snapshot written wins. Hosts that need exclusion must lock per id.
    """

    def __init__(self,
                 registry: Optional[Registry] = None,
                 storage: Optional[TaskStorage] = None,
                 engine_factory: Optional[Callable[[], ExecutionEngine]] = None):
        self.registry = registry if registry is not None else Registry()
        self.storage = storage if storage is not None else InMemoryStorage()
        self._engine_factory = engine_factory

    def new_engine(self) -> ExecutionEngine:
        factory = self._engine_factory or load_engine_factory()
        return factory()

    @asynccontextmanager
    async def _engine(self, engine: Optional[ExecutionEngine] = None):
        if engine is None:
            engine = self.new_engine()
        try:
            await _maybe_await(engine.initialize())
            yield engine
        finally:
            await _maybe_await(engine.dispose())

    def prepare(self, code: str):
        """Rewrite registered SDK calls, then normalize for the engine."""
        return normalize(self.registry.rewrite(code.strip()))

    async def run(self, code: str, id: Optional[str] = None) -> TaskResult:
        task_id = id or new_task_id()
        try:
            script = self.prepare(code)
            async with self._engine() as engine:
                r = await _maybe_await(engine.execute_code(script.code))
                match r.get("type"):
                    case "pause":
                        await _maybe_await(self.storage.set(
                            task_id, _snapshot(script.code, script.keys, r.get("state"), engine.paused)))
                        logger.debug("task %s paused on %r", task_id, r.get("fetch_request"))
                        return TaskResult(id=task_id, status="paused", fetch=r.get("fetch_request"))
                    case "complete":
                        logger.debug("task %s done", task_id)
                        return TaskResult(id=task_id, status="done", result=reconstruct(r.get("result"), script.keys))
                    case _:
                        logger.debug("task %s failed: %s", task_id, r.get("error"))
                        return TaskResult(id=task_id, status="error", error=r.get("error"))
        except Exception as e:
            logger.warning("task %s run failed: %s", task_id, e)
            return TaskResult(id=task_id, status="error", error=str(e) or type(e).__name__)

    async def resume(self, id: str, data: Any) -> TaskResult:
        stored = await _maybe_await(self.storage.get(id))
        if not stored:
            raise TaskNotFound(id)

        # An engine that cannot be created never touched the task; keep it paused.
        fresh = self.new_engine()
        try:
            async with self._engine(fresh) as engine:
                engine.paused = _restore_paused(stored)
                for k, v in engine.paused["variables"].items():
                    engine.variables[k] = v

                r = await _maybe_await(engine.resume_execution(stored.get("state"), data))

                if r.get("type") == "pause":
                    await _maybe_await(self.storage.set(
                        id, _snapshot(stored.get("code"), stored.get("keys"), r.get("state"), engine.paused)))
                    logger.debug("task %s paused on %r", id, r.get("fetch_request"))
                    return TaskResult(id=id, status="paused", fetch=r.get("fetch_request"))

                await _maybe_await(self.storage.delete(id))
                if r.get("type") == "complete":
                    logger.debug("task %s done", id)
                    return TaskResult(id=id, status="done", result=reconstruct(r.get("result"), stored.get("keys")))
                logger.debug("task %s failed: %s", id, r.get("error"))
                return TaskResult(id=id, status="error", error=r.get("error"))
        except Exception as e:
            logger.warning("task %s resume failed: %s", id, e)
            await _maybe_await(self.storage.delete(id))
            return TaskResult(id=id, status="error", error=str(e) or type(e).__name__)

    async def drive(self,
                    code: str,
                    id: Optional[str] = None,
                    *,
                    fetcher: Optional[Callable[[Dict[str, Any]], Any]] = None,
                    max_steps: Optional[int] = None) -> TaskResult:
        """
        Run `code` and fulfil each pending request with `fetcher` until the task
        finishes. With `max_steps`, stop after that many resumes and return the
        still-paused task.
        """
        if fetcher is None:
            from latch.latch_http import fetch_request as fetcher
        task = await self.run(code, id)
        steps = 0
        while task.status == "paused":
            if max_steps is not None and steps >= max_steps:
                break
            data = await _maybe_await(fetcher(task.fetch))
            task = await self.resume(task.id, data)
            steps += 1
        return task


__all__ = [
    "ExecutionEngine",
    "TaskStorage",
    "InMemoryStorage",
    "TaskManager",
    "load_engine_factory",
    "new_task_id",
]
