import pytest

from spiel import (
    DSL, DslMissingError, bulk_expose, declare_dsl_capable, descriptor_of,
    expose, expose_method, hide, set_auto_expose,
)


# --- Auto-exposure ---

def test_public_methods_are_exposed_under_their_own_name():
    class Config(DSL):
        def __init__(self):
            self.items = []

        def add_item(self, item):
            self.items.append(item)

        def _private(self):
            pass

        @property
        def size(self):
            return len(self.items)

    d = descriptor_of(Config)
    assert d.methods == {"add_item": "add_item"}
    assert set(d.trampolines) == {"add_item"}
    assert d.resolve("size") is None


def test_dsl_methods_keyword_disables_auto_exposure():
    class Quiet(DSL, dsl_methods=False):
        def visible(self):
            pass

        @expose
        def shout(self):
            pass

    assert descriptor_of(Quiet).methods == {"shout": "shout"}


def test_dsl_methods_true_exposes_private_names_but_never_dunders():
    class Loud(DSL, dsl_methods=True):
        def __init__(self):
            pass

        def _helper(self):
            pass

    assert descriptor_of(Loud).methods == {"_helper": "_helper"}


def test_set_auto_expose_only_affects_later_definitions():
    class Grows(DSL):
        def early(self):
            pass

    set_auto_expose(Grows, False)

    def late(self):
        pass

    Grows.late = late
    d = descriptor_of(Grows)
    assert d.resolve("early") == "early"
    assert d.resolve("late") is None

    set_auto_expose(Grows, True)

    def later(self):
        pass

    Grows._later = later
    assert d.resolve("_later") == "_later"


def test_function_assigned_after_class_creation_is_auto_exposed():
    class Late(DSL):
        pass

    Late.extra = lambda self: 1
    assert descriptor_of(Late).resolve("extra") == "extra"


# --- Explicit directives ---

def test_expose_decorator_with_alias_keeps_own_name():
    class Renamed(DSL):
        @expose("item")
        def add_item(self, x):
            return x

    d = descriptor_of(Renamed)
    assert d.resolve("item") == "add_item"
    assert d.resolve("add_item") == "add_item"


def test_hide_decorator_overrides_auto_exposure():
    class Hidden(DSL):
        @hide
        def secret(self):
            pass

    assert descriptor_of(Hidden).resolve("secret") is False


def test_class_directives_rename_and_bulk():
    class Directed(DSL, dsl_methods=False):
        def a(self):
            pass

        def b(self):
            pass

        def set_c(self, v):
            pass

    Directed.dsl_method("a")
    Directed.dsl_methods("b", {"see": "set_c"}, cee="set_c")
    d = descriptor_of(Directed)
    assert d.methods == {"a": "a", "see": "set_c", "cee": "set_c", "b": "b"}


def test_bulk_expose_toggles_auto_exposure():
    class Toggle(DSL, dsl_methods=False):
        pass

    bulk_expose(Toggle)
    assert descriptor_of(Toggle).auto_expose is True
    bulk_expose(Toggle, False)
    assert descriptor_of(Toggle).auto_expose is False
    bulk_expose(Toggle, True)
    assert descriptor_of(Toggle).auto_expose is True


def test_reexposing_reuses_the_trampoline():
    class Once(DSL):
        def thing(self):
            pass

    d = descriptor_of(Once)
    first = d.trampolines["thing"]
    expose_method(Once, "thing", "other")
    expose_method(Once, "thing")
    assert d.trampolines["thing"] is first
    assert d.resolve("thing") == "thing"


def test_directives_on_plain_class_raise():
    class Plain:
        pass

    with pytest.raises(DslMissingError):
        expose_method(Plain, "x")


# --- Inheritance ---

class Base(DSL):
    def shared(self):
        pass

    def secretive(self):
        pass


class Child(Base):
    def own(self):
        pass


def test_subclass_gets_own_descriptor_linked_to_parent():
    base_d = descriptor_of(Base)
    child_d = descriptor_of(Child)
    assert child_d is not base_d
    assert child_d.parent is base_d
    assert child_d.resolve("shared") == "shared"
    assert "shared" not in child_d.methods
    assert base_d.resolve("own") is None


def test_trampolines_are_not_duplicated_in_subclasses():
    class Override(Base):
        def shared(self):
            pass

    d = descriptor_of(Override)
    assert d.methods["shared"] == "shared"
    assert "shared" not in d.trampolines
    assert d.capability()["shared"] is descriptor_of(Base).trampolines["shared"]


def test_hiding_stops_lookup_at_that_level_and_is_idempotent():
    class Hider(Base):
        pass

    expose_method(Hider, "secretive", False)
    once = dict(descriptor_of(Hider).methods)
    expose_method(Hider, "secretive", False)
    d = descriptor_of(Hider)
    assert d.methods == once
    assert d.resolve("secretive") is False
    # Absence still falls through
    assert d.resolve("shared") == "shared"
    assert "secretive" not in d.exposed()


def test_subclass_changes_do_not_leak_to_parent():
    class Tweaked(Base):
        pass

    expose_method(Tweaked, "shared", "own_shared")
    assert descriptor_of(Tweaked).resolve("shared") == "own_shared"
    assert descriptor_of(Base).resolve("shared") == "shared"


def test_declare_dsl_capable_on_plain_class_propagates_to_subclasses():
    @declare_dsl_capable
    class Legacy:
        def go(self):
            pass

    class Newer(Legacy):
        def stop(self):
            pass

    class Newest(Newer):
        pass

    assert descriptor_of(Legacy).resolve("go") == "go"
    assert descriptor_of(Newer).parent is descriptor_of(Legacy)
    assert descriptor_of(Newer).resolve("stop") == "stop"
    assert descriptor_of(Newest).parent is descriptor_of(Newer)
    assert declare_dsl_capable(Legacy) is Legacy


def test_declare_dsl_capable_keeps_existing_init_subclass():
    seen = []

    class Hooked:
        def __init_subclass__(cls, **kwargs):
            super().__init_subclass__(**kwargs)
            seen.append(cls.__name__)

    declare_dsl_capable(Hooked)

    class Sub(Hooked):
        def act(self):
            pass

    assert seen == ["Sub"]
    assert descriptor_of(Sub).resolve("act") == "act"


def test_descriptor_of_non_dsl_is_none():
    assert descriptor_of(object()) is None
    assert descriptor_of(int) is None
