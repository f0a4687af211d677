"""
Symbol Tree
===========

Arena of :class:`SymbolNode` records produced by an external debug-info
parser.  Nodes are referenced by integer id and list their children by
id, so the tree can be walked (and shared read-only) without any node
holding a reference to another.

The calibration core only reads the tree; :meth:`SymbolTree.add` exists
for the producer.
"""

from __future__ import annotations

from pathlib import PurePosixPath, PureWindowsPath
from typing import Iterator, Optional, Sequence

from elfcal.core.codec import dimension_descriptor
from elfcal.core.models import DataType, ElementKind, SymbolNode

DEFAULT_ENUM_LABEL_DEPTH = 3


class SymbolTree:
    """Owned arena of symbol nodes.

    Usage::

        tree = SymbolTree()
        cu = tree.add(name=b"src/cal.c", element=ElementKind.COMPILE_UNIT)
        tree.add(name=b"gain", address=0x1008, dims=(4,),
                 data_type=DataType.UINT32, parent=cu)
    """

    def __init__(self) -> None:
        self._nodes: list[SymbolNode] = []
        self._roots: list[int] = []

    # ------------------------------------------------------------------ #
    #  Construction
    # ------------------------------------------------------------------ #

    def add(
        self,
        *,
        name: bytes | str = b"",
        address: int = 0,
        dims: Sequence[int] = (),
        data_type: DataType = DataType.UNKNOWN,
        is_qualifier: bool = False,
        element: ElementKind = ElementKind.OTHER,
        parent: Optional[int] = None,
    ) -> int:
        """Append a node and return its id.

        Raises:
            IndexError: *parent* is not a node of this tree.
        """
        if parent is not None:
            self.node(parent)
        if isinstance(name, str):
            name = name.encode("utf-8")
        node_id = len(self._nodes)
        self._nodes.append(
            SymbolNode(
                node_id=node_id,
                name=name,
                address=address,
                dims=tuple(dims),
                data_type=data_type,
                is_qualifier=is_qualifier,
                element=element,
                parent=parent,
            )
        )
        if parent is None:
            self._roots.append(node_id)
        else:
            self._nodes[parent].children.append(node_id)
        return node_id

    # ------------------------------------------------------------------ #
    #  Access
    # ------------------------------------------------------------------ #

    def node(self, node_id: int) -> SymbolNode:
        if not 0 <= node_id < len(self._nodes):
            raise IndexError(f"no symbol node with id {node_id}")
        return self._nodes[node_id]

    def children(self, node_id: int) -> list[SymbolNode]:
        return [self._nodes[c] for c in self.node(node_id).children]

    def roots(self) -> list[SymbolNode]:
        return [self._nodes[r] for r in self._roots]

    def siblings_after(self, node_id: int) -> list[SymbolNode]:
        """Nodes that follow *node_id* under the same parent."""
        node = self.node(node_id)
        peers = (
            self._roots if node.parent is None
            else self._nodes[node.parent].children
        )
        pos = peers.index(node_id)
        return [self._nodes[p] for p in peers[pos + 1:]]

    def walk(self, node_id: int) -> Iterator[SymbolNode]:
        """Depth-first pre-order traversal starting at *node_id*."""
        stack = [node_id]
        while stack:
            node = self.node(stack.pop())
            yield node
            stack.extend(reversed(node.children))

    def enum_labels(
        self, node_id: int, depth: int = DEFAULT_ENUM_LABEL_DEPTH
    ) -> list[str]:
        """Labels of an enumeration symbol.

        The label chain starts *depth* first-child hops below the node
        and continues through the siblings of that first label.  A
        missing hop yields an empty list.
        """
        current = self.node(node_id)
        for _ in range(depth):
            if not current.children:
                return []
            current = self._nodes[current.children[0]]
        chain = [current, *self.siblings_after(current.node_id)]
        return [n.name.decode("utf-8", errors="replace") for n in chain]

    # ------------------------------------------------------------------ #
    #  Display helpers
    # ------------------------------------------------------------------ #

    def display_name(self, node_id: int) -> str:
        """Human-readable name; compile units show only the file stem."""
        node = self.node(node_id)
        if not node.name:
            return "unnamed"
        name = node.name.decode("utf-8", errors="replace")
        if node.element is ElementKind.COMPILE_UNIT:
            path = PureWindowsPath(name) if "\\" in name else PurePosixPath(name)
            return path.stem or name
        return name

    def __len__(self) -> int:
        return len(self._nodes)


def format_size(dims: Sequence[int]) -> str:
    return dimension_descriptor(dims)


def format_type(data_type: DataType) -> str:
    return data_type.label
