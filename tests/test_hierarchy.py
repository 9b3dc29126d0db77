"""Tests for work item discovery."""

from conftest import LINK, FakeIssueClient, link_to, make_item

from cycle_planner.core.hierarchy import ChildStrategy, HierarchyWalker, QueryOutcome, linked_keys
from cycle_planner.exceptions import QueryError
from cycle_planner.models import IssueKind, LinkRelation


class TestLinkedKeys:
    """Test link filtering on the root item."""

    def test_filters_by_relation_and_keeps_both_directions(self):
        """Test only the configured relation counts, inward and outward alike."""
        root = make_item("RD-1", IssueKind.IDEA, links=[
            LinkRelation(LINK, "outward", "EPIC-1"),
            LinkRelation(LINK, "inward", "EPIC-2"),
            LinkRelation("Blocks", "outward", "EPIC-3"),
            LinkRelation(LINK, "inward", "EPIC-1"),
        ])
        assert linked_keys(root, LINK) == ["EPIC-1", "EPIC-2"]

    def test_self_links_ignored(self):
        """Test a link back to the root is not followed."""
        root = make_item("RD-1", IssueKind.IDEA, links=link_to("RD-1"))
        assert linked_keys(root, LINK) == []


class TestHierarchyWalker:
    """Test depth-bounded discovery."""

    def test_discovers_linked_items_and_children(self, rd1_client):
        """Test linked epics come first, then their stories."""
        walker = HierarchyWalker(rd1_client)
        keys = [item.key for item in walker.discover(rd1_client.items["RD-1"], LINK)]
        assert keys == ["EPIC-1", "ST-1", "ST-2"]

    def test_exclude_resolved_counts_excluded(self, rd1_client):
        """Test resolved items are dropped and counted."""
        walker = HierarchyWalker(rd1_client, exclude_resolved=True)
        discovery = walker.walk(rd1_client.items["RD-1"])
        assert [item.key for item in discovery.items] == ["EPIC-1", "ST-1"]
        assert discovery.excluded_keys == ["ST-2"]
        assert discovery.excluded_count == 1

    def test_depth_bound_on_long_chain(self):
        """Test a chain of max_depth + 5 containment edges is cut at max_depth hops."""
        max_depth = 3
        chain = [f"C-{i}" for i in range(max_depth + 6)]
        items = [make_item(key, IssueKind.EPIC) for key in chain]
        root = make_item("RD-9", IssueKind.IDEA, links=link_to(chain[0]))
        client = FakeIssueClient(
            [root, *items],
            parent_children={parent: [child] for parent, child in zip(chain, chain[1:])},
        )

        discovered = HierarchyWalker(client).discover(root, LINK, max_depth=max_depth)

        assert [item.key for item in discovered] == chain[:max_depth + 1]

    def test_depth_zero_returns_only_linked(self, rd1_client):
        """Test max_depth 0 does not look for children."""
        discovered = HierarchyWalker(rd1_client).discover(rd1_client.items["RD-1"], LINK, max_depth=0)
        assert [item.key for item in discovered] == ["EPIC-1"]
        assert rd1_client.queries == []

    def test_strategy_fallback_order(self):
        """Test later strategies are used only when earlier ones find nothing."""
        root = make_item("RD-2", IssueKind.IDEA, links=link_to("EPIC-A"))
        client = FakeIssueClient(
            [root, make_item("EPIC-A", IssueKind.EPIC), make_item("ST-A", effort=3)],
            hierarchy_children={"EPIC-A": ["ST-A"]},
        )

        discovered = HierarchyWalker(client).discover(root, LINK)

        assert [item.key for item in discovered] == ["EPIC-A", "ST-A"]
        assert client.queries[:3] == ['"Epic Link" = EPIC-A', "parent = EPIC-A", "hierarchy EPIC-A"]

    def test_first_success_short_circuits(self, rd1_client):
        """Test a strategy that finds children stops the search."""
        walker = HierarchyWalker(rd1_client)
        outcome = walker.first_children("EPIC-1")
        assert outcome.strategy == "container-field"
        assert [item.key for item in outcome.items] == ["ST-1", "ST-2"]
        assert rd1_client.queries == ['"Epic Link" = EPIC-1']

    def test_failing_strategy_becomes_empty_outcome(self):
        """Test a raising strategy is recorded as an error and the next one runs."""
        def broken(client, key, fields):
            raise QueryError("JQL rejected")

        client = FakeIssueClient([make_item("EPIC-B", IssueKind.EPIC), make_item("ST-B")],
                                 parent_children={"EPIC-B": ["ST-B"]})
        walker = HierarchyWalker(client, strategies=[
            ChildStrategy("broken", broken),
            ChildStrategy("parent", lambda c, key, fields: c.fetch_by_query(f"parent = {key}", fields)),
        ])

        assert walker._attempt(walker.strategies[0], "EPIC-B") == QueryOutcome("broken", error="JQL rejected")
        assert [item.key for item in walker.children("EPIC-B")] == ["ST-B"]

    def test_node_failure_does_not_abort_walk(self):
        """Test a node whose lookups all fail just has no children."""
        root = make_item("RD-3", IssueKind.IDEA, links=link_to("EPIC-X", "EPIC-Y"))
        client = FakeIssueClient(
            [root, make_item("EPIC-X", IssueKind.EPIC), make_item("EPIC-Y", IssueKind.EPIC), make_item("ST-Y", effort=2)],
            epic_children={"EPIC-Y": ["ST-Y"]},
            failing=["EPIC-X"],
        )

        discovery = HierarchyWalker(client).walk(root)

        assert [item.key for item in discovery.items] == ["EPIC-Y", "ST-Y"]
        assert discovery.linked_keys == ["EPIC-X", "EPIC-Y"]

    def test_cycles_are_visited_once(self):
        """Test an item reachable twice is only returned once."""
        root = make_item("RD-4", IssueKind.IDEA, links=link_to("EPIC-1", "EPIC-2"))
        client = FakeIssueClient(
            [root, make_item("EPIC-1", IssueKind.EPIC), make_item("EPIC-2", IssueKind.EPIC), make_item("ST-1", effort=1)],
            epic_children={"EPIC-1": ["ST-1", "EPIC-2"], "EPIC-2": ["ST-1", "EPIC-1"]},
        )

        keys = [item.key for item in HierarchyWalker(client).discover(root, LINK)]

        assert sorted(keys) == ["EPIC-1", "EPIC-2", "ST-1"]
        assert len(keys) == len(set(keys))

    def test_walks_do_not_share_state(self, rd1_client):
        """Test walking the same root twice gives the same result."""
        walker = HierarchyWalker(rd1_client)
        root = rd1_client.items["RD-1"]
        first = [item.key for item in walker.discover(root, LINK)]
        second = [item.key for item in walker.discover(root, LINK)]
        assert first == second
