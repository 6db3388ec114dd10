"""
Capability tables for DSL-capable classes.

Every DSL-capable class owns a `Descriptor` recording which method names may
be called ambiently (without a receiver) inside a parameterless callback, and
which method of the target each name delegates to. Descriptors are linked by
an explicit parent pointer captured when the class is created, so lookups
never consult the live MRO.

A class becomes DSL-capable by inheriting from `DSL`, or by applying
`declare_dsl_capable` to it. Subclasses of either are set up automatically.
"""

import inspect
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from spiel.spiel_errors import DslMissingError, TARGET_MISMATCH, _dbg
from spiel.spiel_registry import REGISTRY

# A delegate is the name of the target method to call, or False for "hidden".
Delegate = Union[str, bool]

_DESCRIPTOR_ATTR = "_spiel_descriptor"
_MARKS_ATTR = "_spiel_marks"


# ===================================================================
# 1. Trampolines
# ===================================================================

class Trampoline:
    """A forwarding method generated once per exposed name.

    Trampolines are host-agnostic; `bind` attaches one to a host identity
    (a caller namespace or a proxy) together with the host's fallback.
    """
    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def bind(self, host_id: int, fallback: Callable[[str], Any]) -> 'BoundTrampoline':
        return BoundTrampoline(self.name, host_id, fallback)

    def __repr__(self):
        return f"<Trampoline {self.name}>"


class BoundTrampoline:
    """A trampoline attached to one host. Calling it redispatches to the live target."""
    __slots__ = ("name", "host_id", "fallback")

    def __init__(self, name: str, host_id: int, fallback: Callable[[str], Any]):
        self.name = name
        self.host_id = host_id
        self.fallback = fallback

    def __call__(self, *args, **kwargs):
        result = dispatch(self.host_id, self.name, args, kwargs)
        if result is TARGET_MISMATCH:
            # Raises NameError when the host has nothing to fall back to.
            return self.fallback(self.name)(*args, **kwargs)
        return result

    def __repr__(self):
        return f"<BoundTrampoline {self.name} host={self.host_id:#x}>"


def dispatch(host_id: int, name: str, args: Tuple, kwargs: Dict[str, Any]) -> Any:
    """Calls `name` on the newest active target for `host_id` that answers it.

    Each target is consulted through its own class descriptor, never through
    the descriptor whose overlay produced the trampoline.
    """
    for target in reversed(REGISTRY.targets(host_id)):
        descriptor = descriptor_of(target)
        delegate = descriptor.resolve(name) if descriptor is not None else None
        # Only methods the class defines; callables stored on the instance do not count.
        if not delegate or getattr(type(target), delegate, None) is None:
            continue
        method = getattr(target, delegate, None)
        if callable(method):
            return method(*args, **kwargs)
    return TARGET_MISMATCH


# ===================================================================
# 2. Descriptors
# ===================================================================

class Descriptor:
    """The capability table of one DSL-capable class."""

    def __init__(self, owner: type, parent: Optional['Descriptor'] = None,
                 auto_expose: Optional[bool] = None):
        self.owner = owner
        self.parent = parent
        # name -> delegate method name, or False when explicitly hidden
        self.methods: Dict[str, Delegate] = {}
        self.trampolines: Dict[str, Trampoline] = {}
        # None means "unset": public methods are exposed as they are defined.
        self.auto_expose: Optional[bool] = auto_expose

    def resolve(self, name: str) -> Optional[Delegate]:
        """Finds the delegate for `name`.

        An explicit False entry stops the search at this level; a missing
        entry falls through to the parent descriptor.
        """
        delegate = self.methods.get(name)
        if delegate is None and self.parent is not None:
            return self.parent.resolve(name)
        return delegate

    def find_trampoline(self, name: str) -> Optional[Trampoline]:
        descriptor = self
        while descriptor is not None:
            trampoline = descriptor.trampolines.get(name)
            if trampoline is not None:
                return trampoline
            descriptor = descriptor.parent
        return None

    def capability(self) -> Dict[str, Trampoline]:
        """All trampolines reachable from this descriptor, ancestors included."""
        chain: List['Descriptor'] = []
        descriptor = self
        while descriptor is not None:
            chain.append(descriptor)
            descriptor = descriptor.parent
        merged: Dict[str, Trampoline] = {}
        for descriptor in reversed(chain):
            merged.update(descriptor.trampolines)
        return merged

    def exposed(self) -> Dict[str, str]:
        """The effective name -> delegate table, hidden names removed."""
        return {name: delegate for name in self.capability()
                if (delegate := self.resolve(name))}

    def __repr__(self):
        return f"<Descriptor {self.owner.__name__} methods={self.methods!r}>"


def descriptor_of(obj: Any) -> Optional[Descriptor]:
    """Returns the descriptor of a class, or of an instance's class, if it has one."""
    cls = obj if isinstance(obj, type) else type(obj)
    return getattr(cls, _DESCRIPTOR_ATTR, None)


def _own_descriptor(cls: type) -> Descriptor:
    descriptor = cls.__dict__.get(_DESCRIPTOR_ATTR)
    if descriptor is None:
        raise DslMissingError(cls)
    return descriptor


def _setup_class(cls: type, auto_expose: Optional[bool] = None) -> Descriptor:
    parent = None
    for base in cls.__mro__[1:]:
        parent = base.__dict__.get(_DESCRIPTOR_ATTR)
        if parent is not None:
            break
    descriptor = Descriptor(cls, parent, auto_expose)
    # type.__setattr__ bypasses DSLType's method-definition hook.
    type.__setattr__(cls, _DESCRIPTOR_ATTR, descriptor)
    _dbg("descriptor", cls.__name__, "parent", parent.owner.__name__ if parent else None)
    return descriptor


def _scan_body(cls: type):
    for name, value in list(cls.__dict__.items()):
        _method_defined(cls, name, value)


def _method_defined(cls: type, name: str, value: Any):
    if not inspect.isfunction(value):
        return
    method_added(cls, name)
    for alias, visible in getattr(value, _MARKS_ATTR, ()):
        expose_method(cls, alias or name, name if visible else False)


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


# ===================================================================
# 3. Directives
# ===================================================================

def method_added(cls: type, name: str):
    """Applies the auto-expose rule to a method just defined on `cls`."""
    descriptor = _own_descriptor(cls)
    if _is_dunder(name):
        return
    if descriptor.auto_expose:
        expose_method(cls, name)
    elif descriptor.auto_expose is None and not name.startswith("_"):
        expose_method(cls, name)


def set_auto_expose(cls: type, enabled: bool):
    """Turns auto-exposure of subsequently defined methods on or off."""
    _own_descriptor(cls).auto_expose = bool(enabled)


def expose_method(cls: type, name: str, delegate: Optional[Delegate] = None):
    """Exposes `name` for ambient use, delegating to `delegate` on the target.

    `delegate` defaults to `name`; False hides the name at this level even
    if an ancestor exposes it.
    """
    descriptor = _own_descriptor(cls)
    if delegate is None or delegate is True:
        delegate = name
    descriptor.methods[name] = delegate
    if descriptor.find_trampoline(name) is None:
        descriptor.trampolines[name] = Trampoline(name)


def bulk_expose(cls: type, *names, **renames):
    """Exposes several names at once.

    With no arguments (or just True) auto-exposure is switched on; with just
    False it is switched off. A trailing mapping, or keyword arguments, maps
    exposed names to delegate names.
    """
    if (not names and not renames) or (names == (True,) and not renames):
        set_auto_expose(cls, True)
        return
    if names == (False,) and not renames:
        set_auto_expose(cls, False)
        return
    names = list(names)
    if names and isinstance(names[-1], Mapping):
        renames = {**names.pop(), **renames}
    for name, delegate in renames.items():
        expose_method(cls, name, delegate)
    for name in names:
        expose_method(cls, name, name)


def _mark(func, alias: Optional[str], visible: bool):
    func.__dict__.setdefault(_MARKS_ATTR, []).append((alias, visible))


def expose(arg=None):
    """Decorator exposing a method, optionally under another name.

        @expose
        def add_item(self, item): ...

        @expose("item")
        def add_item(self, item): ...
    """
    if callable(arg):
        _mark(arg, None, True)
        return arg

    def decorator(func):
        _mark(func, arg, True)
        return func
    return decorator


def hide(func):
    """Decorator hiding a method from ambient use."""
    _mark(func, None, False)
    return func


# ===================================================================
# 4. Declaring capability
# ===================================================================

def _install_subclass_hook(cls: type):
    previous = cls.__dict__.get("__init_subclass__")

    def __init_subclass__(subcls, **kwargs):
        if previous is not None:
            previous.__func__(subcls, **kwargs)
        else:
            super(cls, subcls).__init_subclass__(**kwargs)
        if isinstance(subcls, DSLType):
            # DSLType.__init__ sets it up once type.__new__ returns.
            return
        _setup_class(subcls)
        _scan_body(subcls)

    cls.__init_subclass__ = classmethod(__init_subclass__)


def declare_dsl_capable(cls: type) -> type:
    """Gives `cls` (and every future subclass) a capability table. Usable as a decorator."""
    if _DESCRIPTOR_ATTR in cls.__dict__:
        return cls
    _setup_class(cls)
    _scan_body(cls)
    if not isinstance(cls, DSLType):
        _install_subclass_hook(cls)
    return cls


class DSLType(type):
    """Metaclass of `DSL`.

    Sets up the descriptor of each new class, honours the `dsl_methods=`
    class keyword, and reports functions assigned to the class later.
    """

    def __new__(mcs, name, bases, namespace, dsl_methods=None, **kwargs):
        return super().__new__(mcs, name, bases, namespace, **kwargs)

    def __init__(cls, name, bases, namespace, dsl_methods=None, **kwargs):
        super().__init__(name, bases, namespace, **kwargs)
        _setup_class(cls, auto_expose=dsl_methods)
        _scan_body(cls)

    def __setattr__(cls, name, value):
        super().__setattr__(name, value)
        if _DESCRIPTOR_ATTR in cls.__dict__:
            _method_defined(cls, name, value)

    def dsl_method(cls, name: str, delegate: Optional[Delegate] = None):
        expose_method(cls, name, delegate)

    def dsl_methods(cls, *names, **renames):
        bulk_expose(cls, *names, **renames)


class DSL(metaclass=DSLType):
    """Base class for objects whose methods can be called ambiently."""
    pass
