import pytest

from utils.dom import (
    NodeType,
    attr,
    first,
    kind,
    klass,
    node_attr,
    node_id,
    node_text,
    node_type,
    parse_html,
    tag,
    traverse,
)


@pytest.mark.parametrize("name, expected", [("div", "div"), ("p", "p"), ("span", None)])
def test_tag(name, expected):
    doc = parse_html('<html><body><div id="test">Hello</div><p>World</p></body></html>')
    found = first(doc, tag(name))
    if expected is None:
        assert found is None
    else:
        assert found is not None and found.name == expected


@pytest.mark.parametrize("key, value, expected", [
    ("id", "myid", "div"),
    ("data-value", "123", "div"),
    ("class", "text", "p"),
    ("id", "nonexistent", None),
])
def test_attr(key, value, expected):
    doc = parse_html('<div id="myid" data-value="123">Hello</div><p class="text">World</p>')
    found = first(doc, attr(key, value))
    assert (found.name if found is not None else None) == expected


def test_class_matches_whole_tokens_only():
    doc = parse_html('<div class="foo-bar baz">x</div>')
    assert first(doc, klass("foo-bar")) is not None
    assert first(doc, klass("baz")) is not None
    assert first(doc, klass("foo")) is None
    assert first(doc, klass("bar")) is None


def test_class_splits_on_any_whitespace():
    doc = parse_html('<span class="count\n  like-count">3</span>')
    found = first(doc, tag("span"), klass("count"), klass("like-count"))
    assert found is not None


def test_id():
    doc = parse_html('<div id="uniqueid">Hello</div><p id="anotherid">World</p>')
    assert first(doc, node_id("anotherid")).name == "p"
    assert first(doc, node_id("nonexistent")) is None


@pytest.mark.parametrize("t, present", [
    (NodeType.ELEMENT, True),
    (NodeType.TEXT, True),
    (NodeType.COMMENT, True),
    (NodeType.DOCUMENT, True),
    (NodeType.DOCTYPE, False),
])
def test_node_type(t, present):
    doc = parse_html("<html><body><!-- comment --><p>Text</p></body></html>")
    assert (first(doc, node_type(t)) is not None) == present


def test_doctype_is_its_own_kind():
    doc = parse_html("<!DOCTYPE html><p>x</p>")
    found = first(doc, node_type(NodeType.DOCTYPE))
    assert found is not None
    assert kind(found) is NodeType.DOCTYPE


def test_traverse_is_preorder_document_order():
    doc = parse_html("<html><body><div><span>1</span><p>2</p></div><span>3</span></body></html>")
    names = [n.name for n in traverse(doc, node_type(NodeType.ELEMENT))]
    assert names == ["html", "body", "div", "span", "p", "span"]


def test_traverse_tests_descendants_of_non_matching_ancestors():
    doc = parse_html('<div class="a"><section><div class="a">inner</div></section></div>')
    found = list(traverse(doc, tag("div"), klass("a")))
    assert len(found) == 2
    assert node_text(found[1]) == "inner"


def test_traverse_includes_root():
    doc = parse_html('<div class="x"><div class="x"></div></div>')
    outer = first(doc, tag("div"))
    assert list(traverse(outer, tag("div")))[0] is outer


def test_traverse_is_restartable():
    doc = parse_html("<p>a</p><p>b</p><p>c</p>")
    nodes = traverse(doc, tag("p"))
    assert [node_text(n) for n in nodes] == ["a", "b", "c"]
    assert [node_text(n) for n in nodes] == ["a", "b", "c"]


def test_traverse_does_no_work_past_last_item():
    doc = parse_html("<div><p>a</p><p>b</p></div>")
    seen = []

    def spy(n):
        seen.append(n)
        return True

    it = iter(traverse(doc, spy, tag("p")))
    assert node_text(next(it)) == "a"
    # document, div, first p
    assert len(seen) == 3


def test_first_agrees_with_traverse():
    doc = parse_html("<ul><li>1</li><li class='x'>2</li><li class='x'>3</li></ul>")
    for selectors in [(tag("li"),), (tag("li"), klass("x")), (tag("table"),)]:
        expected = next(iter(traverse(doc, *selectors)), None)
        assert first(doc, *selectors) is expected


def test_node_attr_missing_and_empty_are_equal():
    doc = parse_html('<a href="">x</a><a>y</a>')
    links = list(traverse(doc, tag("a")))
    assert node_attr(links[0], "href") == ""
    assert node_attr(links[1], "href") == ""


def test_node_attr_first_duplicate_wins():
    doc = parse_html('<a data-x="1" data-x="2">x</a>')
    assert node_attr(first(doc, tag("a")), "data-x") == "1"


def test_node_attr_on_text_node():
    doc = parse_html("<p>hello</p>")
    assert node_attr(first(doc, node_type(NodeType.TEXT)), "class") == ""


def test_node_text_collapses_whitespace():
    doc = parse_html("<div>\n  Hello\n\t<b>big</b>   world  \n</div>")
    assert node_text(first(doc, tag("div"))) == "Hello big world"


def test_node_text_skips_comments():
    doc = parse_html("<p>a<!-- hidden -->b</p>")
    assert node_text(doc) == "ab"
