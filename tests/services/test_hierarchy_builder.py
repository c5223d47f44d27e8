"""Tests for building org chart forests from flat position sets."""

import logging

from orgchart.services.hierarchy_builder import (
    PositionNode,
    build_tree,
    flatten_tree,
    index_children,
)


def _node(node_id, parent_id=None, level=0, title=None, **kwargs):
    return PositionNode(
        id=node_id,
        client_id="acme",
        title=title or node_id.upper(),
        parent_id=parent_id,
        level=level,
        **kwargs,
    )


class TestBuildTree:
    """Tests for build_tree."""

    def test_empty_input_gives_empty_forest(self):
        assert build_tree([]) == []

    def test_single_chain(self):
        roots = build_tree([_node("a"), _node("b", "a", 1), _node("c", "b", 2)])

        assert [r.id for r in roots] == ["a"]
        assert [c.id for c in roots[0].children] == ["b"]
        assert [c.id for c in roots[0].children[0].children] == ["c"]

    def test_multiple_roots(self):
        roots = build_tree([_node("a"), _node("x"), _node("b", "a", 1)])

        assert [r.id for r in roots] == ["a", "x"]
        assert roots[1].children == []

    def test_sibling_order_follows_input(self):
        roots = build_tree([
            _node("root"),
            _node("z", "root", 1),
            _node("m", "root", 1),
            _node("a", "root", 1),
        ])

        assert [c.id for c in roots[0].children] == ["z", "m", "a"]

    def test_orphan_becomes_root(self):
        """A position whose parent is outside the set still renders."""
        roots = build_tree([_node("b", "missing", 1), _node("c", "b", 2)])

        assert [r.id for r in roots] == ["b"]
        assert [c.id for c in roots[0].children] == ["c"]

    def test_children_lists_are_reset(self):
        stale = _node("a")
        stale.children = [_node("ghost")]

        roots = build_tree([stale])

        assert roots[0].children == []

    def test_every_position_appears_once(self):
        nodes = [_node("a"), _node("b", "a", 1), _node("c", "a", 1), _node("d", "c", 2)]
        roots = build_tree(nodes)

        ids = [n.id for n in flatten_tree(roots)]
        assert sorted(ids) == ["a", "b", "c", "d"]

    def test_cyclic_data_logs_unreachable(self, caplog):
        """Corrupt cyclic data does not hang and is reported."""
        nodes = [_node("a"), _node("x", "y", 1), _node("y", "x", 1)]

        with caplog.at_level(logging.WARNING, logger="orgchart.services.hierarchy_builder"):
            roots = build_tree(nodes)

        assert [r.id for r in roots] == ["a"]
        assert "unreachable" in caplog.text


class TestFlattenTree:
    """Tests for flatten_tree."""

    def test_pre_order(self):
        roots = build_tree([
            _node("a"),
            _node("b", "a", 1),
            _node("c", "a", 1),
            _node("d", "b", 2),
            _node("e"),
        ])

        assert [n.id for n in flatten_tree(roots)] == ["a", "b", "d", "c", "e"]

    def test_flatten_then_build_keeps_structure(self):
        nodes = [_node("a"), _node("b", "a", 1), _node("c", "b", 2), _node("d", "a", 1)]
        flat = flatten_tree(build_tree(nodes))

        rebuilt = build_tree(flat)

        assert [n.id for n in flatten_tree(rebuilt)] == ["a", "b", "c", "d"]
        assert {n.id: n.parent_id for n in flat} == {
            "a": None, "b": "a", "c": "b", "d": "a",
        }

    def test_shared_node_emitted_once(self):
        a = _node("a")
        b = _node("b", "a", 1)
        a.children = [b, b]

        assert [n.id for n in flatten_tree([a])] == ["a", "b"]


class TestPositionNode:
    """Tests for the PositionNode snapshot."""

    def test_vacant_without_employee(self):
        assert _node("a").is_vacant is True
        assert _node("b", employee_name="Ada").is_vacant is False

    def test_whitespace_name_is_vacant(self):
        assert _node("a", employee_name=" \t ").is_vacant is True

    def test_to_dict_nests_children(self):
        roots = build_tree([_node("a"), _node("b", "a", 1)])

        data = roots[0].to_dict()

        assert data["id"] == "a"
        assert data["children"][0]["id"] == "b"
        assert data["children"][0]["children"] == []

    def test_to_dict_without_children(self):
        assert "children" not in _node("a").to_dict(include_children=False)


class TestIndexChildren:
    def test_groups_by_parent(self):
        children = index_children([_node("a"), _node("b", "a"), _node("c", "a")])

        assert [c.id for c in children["a"]] == ["b", "c"]
        assert [c.id for c in children[None]] == ["a"]
