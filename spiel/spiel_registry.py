"""
The activation stack registry.

Ambient calls need to know which targets are live for the object (namespace
or proxy) they were made on. Stacks are keyed by ``(execution id, id(host))``
so two threads, or two asyncio tasks on the same loop, never see each other's
targets even when they share a host.
"""

import asyncio
import threading
from typing import Any, Dict, Hashable, List, Optional, Tuple

from spiel.spiel_errors import _dbg

ExecutionId = Tuple[int, Optional[int]]
StackKey = Tuple[ExecutionId, int]


def current_execution_id() -> ExecutionId:
    """Identifies the running thread and, inside an event loop, the running task."""
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    return (threading.get_ident(), id(task) if task is not None else None)


class ActivationRegistry:
    """Maps (execution, host identity) to the ordered stack of active targets."""

    def __init__(self):
        self._stacks: Dict[StackKey, List[Any]] = {}
        # Guards the map only; callbacks never run while it is held.
        self._lock = threading.Lock()

    def key_for(self, host_id: int) -> StackKey:
        return (current_execution_id(), host_id)

    def push(self, host: Any, target: Any) -> StackKey:
        """Pushes `target` for `host` in the current execution; returns the key to pop with."""
        key = self.key_for(id(host))
        with self._lock:
            stack = self._stacks.setdefault(key, [])
            stack.append(target)
            depth = len(stack)
        _dbg("registry push", key, type(target).__name__, "depth", depth)
        return key

    def pop(self, key: StackKey) -> Any:
        """Pops the newest target under `key`, dropping the entry once it is empty."""
        with self._lock:
            stack = self._stacks[key]
            target = stack.pop()
            if not stack:
                del self._stacks[key]
            depth = len(stack)
        _dbg("registry pop", key, type(target).__name__, "depth", depth)
        return target

    def targets(self, host_id: int) -> Tuple[Any, ...]:
        """Snapshot of the active targets for `host_id` in the current execution, oldest first."""
        key = self.key_for(host_id)
        with self._lock:
            stack = self._stacks.get(key)
            return tuple(stack) if stack else ()

    def active_keys(self) -> List[Hashable]:
        with self._lock:
            return list(self._stacks.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._stacks)


REGISTRY = ActivationRegistry()
