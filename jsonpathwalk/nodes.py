from collections.abc import Iterator, Mapping, Sequence
from typing import Any, Protocol


class NodeProvider(Protocol):
    """
    Read-only view over the four JSON shapes (object, array, scalar, null).

    The evaluation engine only ever inspects documents through a provider,
    so any tree representation can be queried once a provider exists for it.
    Implementations must never mutate the nodes they are given.
    """

    def is_object(self, node: Any) -> bool: ...

    def is_array(self, node: Any) -> bool: ...

    def is_scalar(self, node: Any) -> bool: ...

    def is_null(self, node: Any) -> bool: ...

    def has_property(self, node: Any, name: str) -> bool: ...

    def get_property(self, node: Any, name: str) -> Any: ...

    def get_element(self, node: Any, index: int) -> Any: ...

    def length(self, node: Any) -> int: ...

    def iter_properties(self, node: Any) -> Iterator[tuple[str, Any]]: ...

    def iter_elements(self, node: Any) -> Iterator[Any]: ...

    def unwrap(self, node: Any) -> Any: ...


class NativeNodeProvider(NodeProvider):
    """Provider for plain Python structures such as those built by `json.loads`."""

    def is_object(self, node):
        return isinstance(node, Mapping)

    def is_array(self, node):
        return isinstance(node, Sequence) and not isinstance(node, str | bytes)

    def is_scalar(self, node):
        return isinstance(node, str | int | float | bool)

    def is_null(self, node):
        return node is None

    def has_property(self, node, name):
        return self.is_object(node) and name in node

    def get_property(self, node, name):
        return node[name]

    def get_element(self, node, index):
        return node[index]

    def length(self, node):
        return len(node)

    def iter_properties(self, node):
        return iter(node.items())

    def iter_elements(self, node):
        return iter(node)

    def unwrap(self, node):
        return node

    def __eq__(self, other):
        return type(other) is type(self)

    def __hash__(self):
        return hash(type(self))
