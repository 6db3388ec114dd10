"""
The activation engine.

`invoke` runs a callback against a target in one of five conventions,
chosen from the callback's parameter count and the `parameter` /
`parameterless` options:

  - no target at all (`parameter=False, parameterless=False`),
  - the target passed as the single argument,
  - `"instance"`: bare names resolve against the target's attributes,
  - `"proxy"`: bare names resolve through a throwaway proxy,
  - `"mixin"` (default): the target's exposed methods are overlaid onto the
    callback's own module for the duration of the call.
"""

import functools
import inspect
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Tuple, Union

from spiel.spiel_builder import Builder
from spiel.spiel_context import (
    InstanceNamespace, ambient_namespace, callback_arity, rebind, required_keywords,
)
from spiel.spiel_descriptors import descriptor_of
from spiel.spiel_errors import BlockParameterError, DslMissingError, MissingCallbackError, _dbg
from spiel.spiel_overlay import OVERLAYS
from spiel.spiel_proxy import ProxyDelegator, ProxyNamespace
from spiel.spiel_registry import REGISTRY

PARAMETERLESS_MODES = (False, "mixin", "instance", "proxy")

Parameterless = Union[bool, str, None]


def _read_options(options: Optional[Mapping], opts: dict) -> Tuple[Any, Parameterless]:
    merged = dict(options or {})
    merged.update(opts)
    unknown = set(merged) - {"parameter", "parameterless"}
    if unknown:
        raise TypeError(f"unknown invoke options: {', '.join(sorted(unknown))}")
    parameter = merged.get("parameter", True)
    parameterless = merged.get("parameterless", "mixin")
    if parameterless is None or parameterless is True:
        parameterless = "mixin"
    if parameterless not in PARAMETERLESS_MODES:
        raise ValueError(f"parameterless must be one of {PARAMETERLESS_MODES!r}, not {parameterless!r}")
    return parameter, parameterless


def _takes_no_parameters(arity: int) -> bool:
    return arity == 0 or arity == -1


@contextmanager
def activation(callback: Callable, target: Any = None, options: Optional[Mapping] = None,
               builder: Optional[Callable] = None, **opts) -> Iterator[Callable[[], Any]]:
    """Sets up one activation of `callback` and yields a zero-argument callable running it.

    Everything the activation registered (stack entry, overlay reference) is
    undone when the block exits, however it exits. Usage errors are raised
    before anything is registered.
    """
    if callback is None:
        raise MissingCallbackError()
    if builder is not None and options is None and isinstance(target, Mapping):
        # invoke(callback, {"parameterless": "proxy"}, builder=...)
        options, target = target, None
    parameter, parameterless = _read_options(options, opts)
    arity = callback_arity(callback)
    # No convention supplies keyword arguments.
    keywords = required_keywords(callback)
    if keywords:
        raise BlockParameterError(f"Callback should not require keyword arguments: {', '.join(keywords)}")

    if parameter is False and parameterless is False:
        if not _takes_no_parameters(arity):
            raise BlockParameterError("Callback should not take parameters")
        _dbg("invoke", "no target")
        yield callback
        return

    if builder is not None:
        dynamic = Builder()
        invoke(builder, dynamic)
        target = dynamic.finalize()

    if (parameter is not False and arity == 1) or parameterless is False:
        if arity != 1:
            raise BlockParameterError("Callback should take exactly one parameter")
        _dbg("invoke", "parameter", type(target).__name__)
        yield functools.partial(callback, target)
        return

    if not _takes_no_parameters(arity):
        raise BlockParameterError("Callback should not take parameters")

    if parameterless == "instance":
        _dbg("invoke", "instance", type(target).__name__)
        yield rebind(callback, InstanceNamespace(target, ambient_namespace(callback)))
        return

    descriptor = descriptor_of(target)
    if descriptor is None:
        raise DslMissingError(target)
    namespace = ambient_namespace(callback)

    if parameterless == "proxy":
        proxy = ProxyDelegator(descriptor.capability(), namespace)
        rebound = rebind(callback, ProxyNamespace(proxy, namespace))
        _dbg("invoke", "proxy", type(target).__name__)
        key = REGISTRY.push(proxy, target)
        try:
            yield rebound
        finally:
            REGISTRY.pop(key)
        return

    _dbg("invoke", "mixin", type(target).__name__, "into", namespace.get("__name__"))
    key = REGISTRY.push(namespace, target)
    acquired = False
    try:
        OVERLAYS.acquire(namespace, descriptor)
        acquired = True
        yield callback
    finally:
        REGISTRY.pop(key)
        if acquired:
            OVERLAYS.release(namespace, descriptor)


def invoke(callback: Callable, target: Any = None, options: Optional[Mapping] = None,
           builder: Optional[Callable] = None, **opts) -> Any:
    """Runs `callback` against `target` and returns its result.

    Options (as a mapping or keywords):
      parameter      -- False forbids passing the target as an argument.
      parameterless  -- False, "mixin" (default), "instance" or "proxy".

    With `builder`, the target is built on the fly: `builder` is itself
    invoked against a fresh `Builder`, and the finished target is used.
    """
    with activation(callback, target, options, builder, **opts) as run:
        return run()


async def ainvoke(callback: Callable, target: Any = None, options: Optional[Mapping] = None,
                  builder: Optional[Callable] = None, **opts) -> Any:
    """Like `invoke`, but awaits the callback's result before the activation ends."""
    with activation(callback, target, options, builder, **opts) as run:
        result = run()
        if inspect.isawaitable(result):
            result = await result
        return result
