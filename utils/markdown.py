"""
Markdown Module
===============
Best-effort HTML to Markdown conversion of a parsed subtree.

Each recognized tag wraps the Markdown of its children; unknown tags are
transparent. Assumes well-nested, site-typical markup.
"""

import io
from typing import List

from utils.dom import Node, NodeType, children, kind, node_attr


HEADINGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}


def to_markdown(node: Node) -> str:
    """Return the node's content as Markdown."""
    buf = io.StringIO()
    _write_node(buf, node)
    return buf.getvalue()


def _write_children(buf: io.StringIO, node: Node) -> None:
    for c in children(node):
        _write_node(buf, c)


def _is_element(node: Node, *names: str) -> bool:
    return kind(node) is NodeType.ELEMENT and node.name in names


def _write_node(buf: io.StringIO, node: Node) -> None:
    node_kind = kind(node)
    if node_kind is NodeType.TEXT:
        buf.write(str(node))
        return
    if node_kind is not NodeType.ELEMENT:
        # Document: recurse. Comments and doctypes have no children.
        _write_children(buf, node)
        return

    name = node.name
    if name == "a":
        buf.write("[")
        _write_children(buf, node)
        buf.write(f"]({node_attr(node, 'href')})")
    elif name in ("strong", "b"):
        buf.write("**")
        _write_children(buf, node)
        buf.write("**")
    elif name in ("em", "i"):
        buf.write("*")
        _write_children(buf, node)
        buf.write("*")
    elif name == "img":
        buf.write(f"![{node_attr(node, 'alt')}]({node_attr(node, 'src')})")
    elif name == "p":
        buf.write("\n\n")
        _write_children(buf, node)
        buf.write("\n\n")
    elif name == "br":
        buf.write("\n")
    elif name in HEADINGS:
        buf.write("\n" + "#" * HEADINGS[name] + " ")
        _write_children(buf, node)
        buf.write("\n\n")
    elif name == "ul":
        buf.write("\n")
        for li in children(node):
            if _is_element(li, "li"):
                buf.write("- ")
                _write_children(buf, li)
                buf.write("\n")
    elif name == "ol":
        buf.write("\n")
        number = 1
        for li in children(node):
            if _is_element(li, "li"):
                buf.write(f"{number}. ")
                _write_children(buf, li)
                buf.write("\n")
                number += 1
    elif name == "code":
        buf.write("`")
        _write_children(buf, node)
        buf.write("`")
    elif name == "pre":
        buf.write("\n```\n")
        buf.write(_direct_text(node))
        buf.write("\n```\n")
    elif name == "table":
        _write_table(buf, node)
    else:
        _write_children(buf, node)


def _direct_text(node: Node) -> str:
    """Text of the node's direct text children, without recursing into elements."""
    return "".join(str(c) for c in children(node) if kind(c) is NodeType.TEXT)


def _row_cells(tr: Node, *cell_tags: str) -> List[str]:
    return [to_markdown(cell) for cell in children(tr) if _is_element(cell, *cell_tags)]


def _write_table(buf: io.StringIO, table: Node) -> None:
    header: List[str] = []
    rows: List[List[str]] = []
    for section in children(table):
        if _is_element(section, "thead"):
            for tr in children(section):
                if _is_element(tr, "tr"):
                    header.extend(_row_cells(tr, "th"))
        elif _is_element(section, "tbody"):
            for tr in children(section):
                if _is_element(tr, "tr"):
                    rows.append(_row_cells(tr, "td", "th"))
        elif _is_element(section, "tr"):
            rows.append(_row_cells(section, "td", "th"))

    buf.write("\n")
    if header:
        buf.write("| " + " | ".join(header) + " |\n")
        buf.write("|" + " --- |" * len(header) + "\n")
    for row in rows:
        buf.write("| " + " | ".join(row) + " |\n")
    buf.write("\n")
