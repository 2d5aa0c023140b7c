"""
DOM Module
==========
Predicate-based node selection over a parsed HTML document.

A selector is any callable taking a node and returning a bool. Selectors
compose by conjunction: traverse() yields every node of the tree, in document
order, that satisfies all of them. Each node is tested on its own, so a
non-matching ancestor never hides a matching descendant.

Usage:
    doc = parse_html(page)
    gallery = first(doc, tag("div"), node_id("submission-gallery"))
    for card in traverse(gallery, tag("div"), klass("gallery-item")):
        ...
"""

from enum import Enum
from typing import Callable, Iterator, List, Optional, Union

from bs4 import BeautifulSoup, Doctype, NavigableString, PageElement, Tag
from bs4.element import PreformattedString


Node = PageElement
Selector = Callable[[Node], bool]


class NodeType(Enum):
    """The five kinds of node a parsed document is made of."""
    DOCUMENT = "document"
    ELEMENT = "element"
    TEXT = "text"
    COMMENT = "comment"
    DOCTYPE = "doctype"


def parse_html(markup: Union[str, bytes]) -> BeautifulSoup:
    """
    Parse an HTML document.

    Attribute values are kept as the raw strings found in the markup (no
    splitting of ``class`` into a list) and the first occurrence of a
    duplicated attribute wins.
    """
    return BeautifulSoup(
        markup,
        "html.parser",
        multi_valued_attributes=None,
        on_duplicate_attribute="ignore",
    )


def kind(node: Node) -> NodeType:
    """Classify a bs4 node into one of the NodeType kinds."""
    if isinstance(node, BeautifulSoup):
        return NodeType.DOCUMENT
    if isinstance(node, Tag):
        return NodeType.ELEMENT
    if isinstance(node, Doctype):
        return NodeType.DOCTYPE
    # Comments, CDATA, processing instructions and declarations.
    if isinstance(node, PreformattedString):
        return NodeType.COMMENT
    if isinstance(node, NavigableString):
        return NodeType.TEXT
    raise TypeError(f"Unsupported node type: {type(node)}")


def children(node: Node) -> List[Node]:
    """Direct children of a node, in document order."""
    if isinstance(node, Tag):
        return node.contents
    return []


# ============ Selectors ============

def tag(name: str) -> Selector:
    """Select element nodes by tag name."""
    def select(n: Node) -> bool:
        return kind(n) is NodeType.ELEMENT and n.name == name
    return select


def attr(key: str, value: str) -> Selector:
    """Select element nodes by attribute name and value."""
    def select(n: Node) -> bool:
        return kind(n) is NodeType.ELEMENT and node_attr(n, key) == value
    return select


def klass(name: str) -> Selector:
    """Select element nodes whose class list contains exactly this token."""
    def select(n: Node) -> bool:
        return kind(n) is NodeType.ELEMENT and name in node_attr(n, "class").split()
    return select


def node_id(value: str) -> Selector:
    """Select element nodes by id."""
    return attr("id", value)


def node_type(t: NodeType) -> Selector:
    """Select nodes by kind."""
    def select(n: Node) -> bool:
        return kind(n) is t
    return select


# ============ Traversal ============

class Cursor:
    """
    Depth-first, pre-order walk over a subtree.

    The stack holds one frame per open level: the sibling list and the index
    of the next sibling to visit. A node is tested before its children are
    pushed, and nothing past the last returned node is ever examined.
    """

    def __init__(self, root: Node, selectors: tuple):
        self._selectors = selectors
        self._stack = [[[root], 0]]

    def __iter__(self) -> "Cursor":
        return self

    def __next__(self) -> Node:
        while self._stack:
            frame = self._stack[-1]
            siblings, index = frame
            if index >= len(siblings):
                self._stack.pop()
                continue
            frame[1] = index + 1
            node = siblings[index]
            nested = children(node)
            if nested:
                self._stack.append([nested, 0])
            if all(s(node) for s in self._selectors):
                return node
        raise StopIteration


class Traversal:
    """
    Restartable view over the nodes of a subtree matching a set of selectors.

    Every call to iter() starts a fresh Cursor from the root.
    """

    def __init__(self, root: Node, selectors: tuple):
        self.root = root
        self.selectors = selectors

    def __iter__(self) -> Iterator[Node]:
        return Cursor(self.root, self.selectors)


def traverse(root: Node, *selectors: Selector) -> Traversal:
    """Nodes under root (root included) matching all selectors, in document order."""
    return Traversal(root, selectors)


def first(root: Node, *selectors: Selector) -> Optional[Node]:
    """The first node traverse() would yield, or None if nothing matches."""
    return next(iter(traverse(root, *selectors)), None)


# ============ Node accessors ============

def node_attr(node: Node, key: str) -> str:
    """Attribute value, or an empty string when the attribute is absent."""
    if kind(node) is not NodeType.ELEMENT:
        return ""
    value = node.attrs.get(key)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return value


def node_text(node: Node) -> str:
    """Visible text: all descendant text joined, whitespace runs collapsed."""
    raw = "".join(str(t) for t in traverse(node, node_type(NodeType.TEXT)))
    return " ".join(raw.split())
