"""
Overlaying a capability table onto a caller's namespace.

A mixin activation makes the exposed names of the target's class callable as
bare names from the callback's module by installing bound trampolines into
that module's globals. Nested and concurrent activations on the same
(namespace, descriptor) pair share one overlay: it is reference counted,
applied on the first acquire and removed on the last release.
"""

import builtins
import threading
from typing import Any, Dict, Tuple

from spiel.spiel_descriptors import BoundTrampoline, Descriptor, Trampoline
from spiel.spiel_errors import _dbg

_MISSING = object()

OverlayKey = Tuple[int, int]


class _OverlayHost:
    """Installed trampolines and saved bindings for one namespace."""

    def __init__(self, namespace: Dict[str, Any]):
        self.namespace = namespace
        self.installed: Dict[str, BoundTrampoline] = {}
        # How many applied capabilities currently need each name.
        self.name_counts: Dict[str, int] = {}
        self.saved: Dict[str, Any] = {}

    def install(self, capability: Dict[str, Trampoline]):
        for name, trampoline in capability.items():
            count = self.name_counts.get(name, 0)
            if count == 0:
                self.saved[name] = self.namespace.get(name, _MISSING)
                bound = trampoline.bind(id(self.namespace), self.fallback)
                self.installed[name] = bound
                self.namespace[name] = bound
            self.name_counts[name] = count + 1

    def uninstall(self, capability: Dict[str, Trampoline]):
        for name in capability:
            count = self.name_counts[name] - 1
            if count:
                self.name_counts[name] = count
                continue
            del self.name_counts[name]
            bound = self.installed.pop(name)
            original = self.saved.pop(name)
            # Leave the name alone if something rebound it while overlaid.
            if self.namespace.get(name) is not bound:
                continue
            if original is _MISSING:
                del self.namespace[name]
            else:
                self.namespace[name] = original

    def fallback(self, name: str) -> Any:
        """What `name` meant in this namespace before the overlay, or the builtin of that name."""
        original = self.saved.get(name, _MISSING)
        if original is _MISSING:
            current = self.namespace.get(name, _MISSING)
            if not isinstance(current, BoundTrampoline):
                original = current
        if original is _MISSING:
            original = getattr(builtins, name, _MISSING)
        if original is _MISSING:
            raise NameError(f"name {name!r} is not defined")
        return original


class OverlayManager:
    """Reference-counted overlays keyed by (namespace identity, descriptor identity)."""

    def __init__(self):
        # Held around count changes and the physical apply/remove only.
        self._lock = threading.Lock()
        self._counts: Dict[OverlayKey, int] = {}
        self._applied: Dict[OverlayKey, Dict[str, Trampoline]] = {}
        self._hosts: Dict[int, _OverlayHost] = {}

    def acquire(self, namespace: Dict[str, Any], descriptor: Descriptor) -> int:
        """Takes a reference on the overlay.

        The first reference applies it. Later ones install any names the
        descriptor exposed after it was applied, so that the last release
        removes them too.
        """
        key = (id(namespace), id(descriptor))
        with self._lock:
            count = self._counts.get(key, 0) + 1
            if count == 1:
                self._apply(namespace, descriptor)
            else:
                self._extend(namespace, descriptor)
            self._counts[key] = count
        return count

    def release(self, namespace: Dict[str, Any], descriptor: Descriptor) -> int:
        """Drops a reference on the overlay, removing it when none are left."""
        key = (id(namespace), id(descriptor))
        with self._lock:
            count = self._counts[key] - 1
            if count:
                self._counts[key] = count
            else:
                del self._counts[key]
                self._remove(namespace, descriptor)
        return count

    def count(self, namespace: Dict[str, Any], descriptor: Descriptor) -> int:
        with self._lock:
            return self._counts.get((id(namespace), id(descriptor)), 0)

    def is_overlaid(self, namespace: Dict[str, Any]) -> bool:
        with self._lock:
            return id(namespace) in self._hosts

    def _apply(self, namespace: Dict[str, Any], descriptor: Descriptor):
        host = self._hosts.get(id(namespace))
        if host is None:
            host = self._hosts[id(namespace)] = _OverlayHost(namespace)
        capability = descriptor.capability()
        host.install(capability)
        self._applied[(id(namespace), id(descriptor))] = capability
        _dbg("overlay apply", descriptor.owner.__name__, "onto", namespace.get("__name__"), sorted(capability))

    def _extend(self, namespace: Dict[str, Any], descriptor: Descriptor):
        # Names exposed since the overlay was applied.
        applied = self._applied[(id(namespace), id(descriptor))]
        added = {name: trampoline for name, trampoline in descriptor.capability().items()
                 if name not in applied}
        if added:
            self._hosts[id(namespace)].install(added)
            applied.update(added)
            _dbg("overlay extend", descriptor.owner.__name__, "onto", namespace.get("__name__"), sorted(added))

    def _remove(self, namespace: Dict[str, Any], descriptor: Descriptor):
        host = self._hosts[id(namespace)]
        host.uninstall(self._applied.pop((id(namespace), id(descriptor))))
        if not host.name_counts:
            del self._hosts[id(namespace)]
        _dbg("overlay remove", descriptor.owner.__name__, "from", namespace.get("__name__"))


OVERLAYS = OverlayManager()
