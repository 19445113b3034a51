"""Tests for easy_npm.graph."""

from __future__ import annotations

import itertools

import pytest

from easy_npm.errors import CycleDetectedError
from easy_npm.graph import topo_sort


def _respects(order: list[str], edges: list[tuple[str, str]]) -> bool:
    return all(order.index(a) < order.index(b) for a, b in edges)


class TestTopoSort:
    """Tests for topo_sort()."""

    def test_no_edges_keeps_input_order(self) -> None:
        """Without edges, nodes come out in input order."""
        assert topo_sort(["c", "a", "b"], []) == ["c", "a", "b"]

    def test_linear_deps(self) -> None:
        """A chain is ordered from its end back to its start."""
        # c before b before a
        result = topo_sort(["a", "b", "c"], [("b", "a"), ("c", "b")])
        assert result == ["c", "b", "a"]

    def test_diamond_deps(self) -> None:
        """A shared dependency comes before both of its dependents."""
        edges = [
            ("left", "top"),
            ("right", "top"),
            ("bottom", "left"),
            ("bottom", "right"),
        ]
        result = topo_sort(["top", "left", "right", "bottom"], edges)
        assert result == ["bottom", "left", "right", "top"]

    def test_unconstrained_nodes_keep_discovery_order(self) -> None:
        """Only constrained nodes move; the rest keep their place."""
        result = topo_sort(["root", "app", "lib", "tools"], [("lib", "app")])
        assert result == ["root", "lib", "app", "tools"]

    def test_single_node(self) -> None:
        """A single node is returned as is."""
        assert topo_sort(["only"], []) == ["only"]

    def test_empty(self) -> None:
        """No nodes gives an empty order."""
        assert topo_sort([], []) == []

    def test_duplicate_edges_are_harmless(self) -> None:
        """Repeating an edge does not change the result."""
        result = topo_sort(["a", "b"], [("b", "a"), ("b", "a")])
        assert result == ["b", "a"]

    def test_every_node_once_for_all_acyclic_edge_sets(self) -> None:
        """Every acyclic edge set yields each node once, edges respected."""
        nodes = ["a", "b", "c", "d"]
        # Every subset of the forward edges of a fixed total order is acyclic
        forward = [(x, y) for x, y in itertools.combinations(nodes, 2)]
        for size in range(len(forward) + 1):
            for edges in itertools.combinations(forward, size):
                shuffled = [(y, x) for x, y in edges]
                result = topo_sort(list(reversed(nodes)), shuffled)
                assert sorted(result) == sorted(nodes)
                assert _respects(result, shuffled)

    def test_is_deterministic(self) -> None:
        """The same input always gives the same order."""
        nodes = ["e", "d", "c", "b", "a"]
        edges = [("a", "e"), ("b", "d")]
        assert topo_sort(nodes, edges) == topo_sort(nodes, edges)

    def test_cycle_raises(self) -> None:
        """Two nodes depending on each other are a cycle."""
        with pytest.raises(CycleDetectedError, match="cycle"):
            topo_sort(["a", "b"], [("a", "b"), ("b", "a")])

    def test_three_way_cycle_names_a_member(self) -> None:
        """The reported node and members belong to the cycle."""
        edges = [("a", "b"), ("b", "c"), ("c", "a")]
        with pytest.raises(CycleDetectedError) as excinfo:
            topo_sort(["a", "b", "c", "d"], edges)
        assert excinfo.value.node in {"a", "b", "c"}
        assert sorted(excinfo.value.cycle) == ["a", "b", "c"]

    def test_cycle_reported_in_edge_direction(self) -> None:
        """Each cycle member precedes the next along the edges."""
        edges = [("a", "b"), ("b", "c"), ("c", "a")]
        with pytest.raises(CycleDetectedError) as excinfo:
            topo_sort(["a", "b", "c"], edges)
        cycle = excinfo.value.cycle
        pairs = set(zip(cycle, cycle[1:] + cycle[:1]))
        assert pairs == set(edges)

    def test_cycle_behind_acyclic_prefix(self) -> None:
        """Nodes downstream of a cycle are not reported as its members."""
        edges = [("root", "x"), ("x", "y"), ("y", "x"), ("y", "leaf")]
        with pytest.raises(CycleDetectedError) as excinfo:
            topo_sort(["root", "x", "y", "leaf"], edges)
        assert sorted(excinfo.value.cycle) == ["x", "y"]

    def test_self_loop_raises(self) -> None:
        """A node depending on itself is a cycle of one."""
        with pytest.raises(CycleDetectedError) as excinfo:
            topo_sort(["a", "b"], [("a", "a")])
        assert excinfo.value.cycle == ["a"]

    def test_unknown_node_in_edge_raises(self) -> None:
        """Edges must only name known nodes."""
        with pytest.raises(ValueError, match="unknown node"):
            topo_sort(["a"], [("external", "a")])
