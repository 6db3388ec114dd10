"""
The ambient context of a callback.

A callback's bare names are resolved through the globals of the function that
implements it, so that mapping is its ambient context: mixin activations
overlay it in place, while instance and proxy activations run a copy of the
function over a different mapping.
"""

import builtins
import functools
import inspect
import types
from typing import Any, Callable, Dict, List, Optional


def _code_function(callback: Any) -> Optional[types.FunctionType]:
    """Returns the Python function whose globals `callback` runs with, if any."""
    while True:
        if isinstance(callback, types.MethodType):
            callback = callback.__func__
        elif isinstance(callback, functools.partial):
            callback = callback.func
        elif inspect.isfunction(callback):
            return callback
        else:
            call = getattr(type(callback), "__call__", None)
            return call if inspect.isfunction(call) else None


def ambient_namespace(callback: Callable) -> Dict[str, Any]:
    """The globals mapping a callback's bare names resolve against."""
    func = _code_function(callback)
    if func is None:
        raise TypeError(f"cannot find the ambient context of {callback!r}")
    return func.__globals__


def rebind(callback: Callable, namespace: Dict[str, Any]) -> Callable:
    """Returns a copy of `callback` that resolves its bare names against `namespace`."""
    if isinstance(callback, types.MethodType):
        return types.MethodType(rebind(callback.__func__, namespace), callback.__self__)
    if isinstance(callback, functools.partial):
        return functools.partial(rebind(callback.func, namespace), *callback.args, **callback.keywords)
    if inspect.isfunction(callback):
        func = types.FunctionType(
            callback.__code__, namespace, callback.__name__,
            callback.__defaults__, callback.__closure__,
        )
        func.__kwdefaults__ = dict(callback.__kwdefaults__) if callback.__kwdefaults__ else None
        func.__qualname__ = callback.__qualname__
        func.__dict__.update(callback.__dict__)
        return func
    call = getattr(type(callback), "__call__", None)
    if inspect.isfunction(call):
        return types.MethodType(rebind(call, namespace), callback)
    raise TypeError(f"cannot rebind the ambient context of {callback!r}")


def callback_arity(callback: Callable) -> int:
    """Counts the parameters a callback requires.

    Returns the number of required positional parameters, or
    -(required + 1) when the callback also accepts optional or variadic
    positional arguments. A callback whose signature cannot be read counts as
    fully variadic (-1). Keyword-only parameters are not counted; see
    `required_keywords`.
    """
    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        return -1
    required = 0
    optional = False
    for param in signature.parameters.values():
        match param.kind:
            case inspect.Parameter.POSITIONAL_ONLY | inspect.Parameter.POSITIONAL_OR_KEYWORD:
                if param.default is param.empty:
                    required += 1
                else:
                    optional = True
            case inspect.Parameter.VAR_POSITIONAL:
                optional = True
    return -(required + 1) if optional else required


def required_keywords(callback: Callable) -> List[str]:
    """Names of the keyword-only parameters a callback cannot run without."""
    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        return []
    return [param.name for param in signature.parameters.values()
            if param.kind is inspect.Parameter.KEYWORD_ONLY and param.default is param.empty]


class ReboundNamespace(dict):
    """Globals mapping for a rebound callback.

    Only `__builtins__` and `__name__` are stored; every other name is
    resolved on demand by `lookup`. A KeyError from `lookup` sends the
    interpreter on to the builtins.
    """

    def __init__(self, namespace: Dict[str, Any]):
        super().__init__()
        self.namespace = namespace
        self["__builtins__"] = namespace.get("__builtins__", builtins.__dict__)
        self["__name__"] = namespace.get("__name__")

    def __missing__(self, name):
        return self.lookup(name)

    def lookup(self, name: str) -> Any:
        return self.namespace[name]


class InstanceNamespace(ReboundNamespace):
    """Bare names resolve to the target's attributes, then to the callback's own module."""

    def __init__(self, target: Any, namespace: Dict[str, Any]):
        super().__init__(namespace)
        self.target = target

    def lookup(self, name: str) -> Any:
        try:
            return getattr(self.target, name)
        except AttributeError:
            pass
        return self.namespace[name]
