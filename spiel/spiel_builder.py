"""
Ad-hoc targets assembled from closures.

A `Builder` collects `MethodInfo` records on a class created for that builder
alone; every added method is the same generic `BuiltMethod` attribute, and all
calls funnel through `BuiltTarget._invoke_methodinfo`.
"""

import functools
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from spiel.spiel_descriptors import DSL, DSLType, expose, expose_method


@dataclass(frozen=True)
class MethodInfo:
    name: str
    implementation: Callable
    receive_block: bool = False


class BuiltMethod:
    """Class attribute standing for one added method."""

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return functools.partial(type(instance)._invoke_methodinfo, self.name)

    def __repr__(self):
        return f"<BuiltMethod {self.name}>"


class BuiltTarget(DSL):
    """Base class of the targets a Builder produces."""
    _spiel_methodinfo: Dict[str, MethodInfo] = {}

    @classmethod
    def _invoke_methodinfo(cls, name: str, *args, block: Optional[Callable] = None, **kwargs):
        info = cls._spiel_methodinfo[name]
        if info.receive_block:
            return info.implementation(*args, block, **kwargs)
        return info.implementation(*args, **kwargs)


class Builder(DSL, dsl_methods=False):
    """Assembles a one-off target class from closures.

    The builder is itself DSL-capable, so a builder callback may either take
    the builder as its parameter or call `add_method` ambiently.
    """

    def __init__(self):
        self._target_class = DSLType(
            "Target", (BuiltTarget,),
            {"_spiel_methodinfo": {}, "__module__": __name__},
            dsl_methods=False,
        )

    @expose
    def add_method(self, name: str, implementation: Optional[Callable] = None, *,
                   receive_block: bool = False, mixin: Union[str, bool, None] = None):
        """Adds method `name` to the target being built.

        The method calls `implementation` with the call's arguments; with
        `receive_block` the call's `block=` argument is appended as a final
        positional argument. The method is exposed for ambient use as `name`,
        or as `mixin` when that is a string; `mixin=False` leaves it callable
        only on the target itself. Without `implementation` this returns a
        decorator.
        """
        if implementation is None:
            def decorator(func):
                self.add_method(name, func, receive_block=receive_block, mixin=mixin)
                return func
            return decorator
        target_class = self._target_class
        target_class._spiel_methodinfo[name] = MethodInfo(name, implementation, receive_block)
        setattr(target_class, name, BuiltMethod(name))
        if mixin is not False:
            exposed_name = name if mixin is None or mixin is True else mixin
            expose_method(target_class, exposed_name, name)
        return implementation

    def finalize(self) -> Any:
        """A new instance of the class built so far."""
        return self._target_class()
