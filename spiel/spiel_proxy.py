"""
Proxy activations.

Instead of overlaying the callback's module, a proxy activation runs the
callback over a throwaway `ProxyDelegator`: exposed names go to the target
through trampolines bound to the proxy, everything else is forwarded to the
callback's own module.
"""

import builtins
from typing import Any, Dict

from spiel.spiel_context import ReboundNamespace
from spiel.spiel_descriptors import Trampoline

_MISSING = object()


class ProxyDelegator:
    """Answers the exposed names of one capability table; forwards the rest."""

    def __init__(self, capability: Dict[str, Trampoline], namespace: Dict[str, Any]):
        self._spiel_capability = capability
        self._spiel_namespace = namespace

    def __getattr__(self, name):
        if name.startswith("_spiel_"):
            raise AttributeError(name)
        trampoline = self._spiel_capability.get(name)
        if trampoline is not None:
            return trampoline.bind(id(self), self._spiel_forward)
        try:
            return self._spiel_forward(name)
        except NameError:
            raise AttributeError(name) from None

    def _spiel_forward(self, name: str) -> Any:
        namespace = self._spiel_namespace
        if name in namespace:
            return namespace[name]
        value = getattr(builtins, name, _MISSING)
        if value is _MISSING:
            raise NameError(f"name {name!r} is not defined")
        return value

    def __repr__(self):
        return f"<ProxyDelegator {sorted(self._spiel_capability)}>"


class ProxyNamespace(ReboundNamespace):
    """Globals mapping that resolves every bare name through a proxy."""

    def __init__(self, proxy: ProxyDelegator, namespace: Dict[str, Any]):
        super().__init__(namespace)
        self.proxy = proxy

    def lookup(self, name: str) -> Any:
        try:
            return getattr(self.proxy, name)
        except AttributeError:
            raise KeyError(name) from None
