"""
Request propagation context.

An immutable, append-only chain of bindings threaded through a request's
middleware. Keys are objects, not strings: two middleware declaring a key
named ``"user"`` get two distinct keys and can never read each other's
values by accident.

Example:
    USER = ContextKey[str]("user")

    ctx = Context.empty().with_value(USER, "alice")
    ctx.value(USER)          # "alice"
    Context.empty().value(USER, "anonymous")  # "anonymous"
"""

from __future__ import annotations

from typing import Any, Generic, Iterator, Optional, Tuple, TypeVar, overload

T = TypeVar("T")
D = TypeVar("D")


class ContextKey(Generic[T]):
    """
    Typed context key, compared by identity.

    Args:
        name: Label used in ``repr`` only
        default: Value returned by ``Context.value`` when unbound
    """

    __slots__ = ("name", "default")

    def __init__(self, name: str, default: Optional[T] = None) -> None:
        self.name = name
        self.default = default

    def __repr__(self) -> str:
        return f"<ContextKey {self.name}>"


class Context:
    """
    One node of the propagation chain.

    ``with_value`` never touches ``self``; it returns a new node whose
    parent is ``self``. Lookups walk from the newest binding to the oldest,
    so a later binding of the same key shadows an earlier one.
    """

    __slots__ = ("_parent", "_key", "_value", "_depth")

    def __init__(
        self,
        parent: Optional["Context"] = None,
        key: Optional[ContextKey[Any]] = None,
        value: Any = None,
    ) -> None:
        self._parent = parent
        self._key = key
        self._value = value
        self._depth = 0 if parent is None else parent._depth + 1

    @classmethod
    def empty(cls) -> "Context":
        return cls()

    def with_value(self, key: ContextKey[T], value: T) -> "Context":
        """Derive a context that additionally binds ``key`` to ``value``."""
        if not isinstance(key, ContextKey):
            raise TypeError(f"context keys must be ContextKey instances, got {type(key).__name__}")
        return Context(self, key, value)

    @overload
    def value(self, key: ContextKey[T]) -> Optional[T]: ...

    @overload
    def value(self, key: ContextKey[T], default: D) -> T | D: ...

    def value(self, key, default=None):
        node: Optional[Context] = self
        while node is not None and node._key is not None:
            if node._key is key:
                return node._value
            node = node._parent
        return default if default is not None else key.default

    def bindings(self) -> Iterator[Tuple[ContextKey[Any], Any]]:
        """Iterate bindings from newest to oldest, shadowed ones included."""
        node: Optional[Context] = self
        while node is not None and node._key is not None:
            yield node._key, node._value
            node = node._parent

    def __contains__(self, key: object) -> bool:
        return any(bound is key for bound, _ in self.bindings())

    def __len__(self) -> int:
        return self._depth

    def __repr__(self) -> str:
        names = ", ".join(key.name for key, _ in self.bindings())
        return f"<Context [{names}]>"
