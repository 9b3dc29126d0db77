"""
Work item discovery.

Starting from a root item (usually a product idea), follow its typed links
to delivery items, then walk containment (epic -> story -> subtask) beneath
each of them. Children are looked up with an ordered list of query
strategies; the first one returning anything wins. Individual query failures
never abort a walk.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from cycle_planner.clients.base import IssueQueryClient
from cycle_planner.exceptions import PlannerError
from cycle_planner.models import WorkItem

logger = logging.getLogger(__name__)

DEFAULT_RELATION = "Polaris work item link"
DEFAULT_MAX_DEPTH = 3
DEFAULT_CONTAINER_FIELD = "Epic Link"


@dataclass
class QueryOutcome:
    """Result of one strategy attempt. Failures carry an error and no items."""
    strategy: str
    items: List[WorkItem] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.items)


@dataclass
class ChildStrategy:
    """A named way of asking the tracker for the children of an item."""
    name: str
    run: Callable[[IssueQueryClient, str, Optional[Sequence[str]]], List[WorkItem]]


def default_strategies(container_field: str = DEFAULT_CONTAINER_FIELD) -> List[ChildStrategy]:
    """Container-field query, then parent query, then the hierarchy API."""
    return [
        ChildStrategy(
            "container-field",
            lambda client, key, fields: client.fetch_by_query(f'"{container_field}" = {key}', fields),
        ),
        ChildStrategy(
            "parent",
            lambda client, key, fields: client.fetch_by_query(f"parent = {key}", fields),
        ),
        ChildStrategy(
            "hierarchy-api",
            lambda client, key, fields: client.fetch_children_via_hierarchy_api(key, fields),
        ),
    ]


@dataclass
class Discovery:
    """Everything one walk found beneath a root item.

    ``nodes`` holds every fetched item including excluded ones, ``children``
    the containment edges actually walked, and ``items`` the items that
    remain after resolved-item filtering.
    """
    root_key: str
    linked_keys: List[str] = field(default_factory=list)
    nodes: Dict[str, WorkItem] = field(default_factory=dict)
    children: Dict[str, List[str]] = field(default_factory=dict)
    excluded_keys: List[str] = field(default_factory=list)

    @property
    def items(self) -> List[WorkItem]:
        excluded = set(self.excluded_keys)
        return [item for key, item in self.nodes.items() if key not in excluded]

    @property
    def excluded_count(self) -> int:
        return len(self.excluded_keys)

    def own_effort(self, key: str) -> float:
        """Effort of one node as counted in totals (excluded or unknown nodes count zero)."""
        if key in self.excluded_keys:
            return 0.0
        item = self.nodes.get(key)
        return item.own_effort if item else 0.0


def linked_keys(root: WorkItem, relation_filter: str = DEFAULT_RELATION) -> List[str]:
    """Keys linked to the root through the given relation type, both directions, deduplicated."""
    keys: List[str] = []
    for link in root.links:
        if link.relation_type != relation_filter:
            continue
        if link.target_key and link.target_key != root.key and link.target_key not in keys:
            keys.append(link.target_key)
    return keys


class HierarchyWalker:
    """Depth-bounded discovery of the work beneath a root item.

    Traversal state lives only inside a single ``walk`` call, so walking
    several roots with one walker never shares visited sets between them.
    """

    def __init__(
        self,
        client: IssueQueryClient,
        strategies: Optional[List[ChildStrategy]] = None,
        relation_filter: str = DEFAULT_RELATION,
        max_depth: int = DEFAULT_MAX_DEPTH,
        exclude_resolved: bool = False,
        fields: Optional[Sequence[str]] = None,
    ):
        self.client = client
        self.strategies = strategies if strategies is not None else default_strategies()
        self.relation_filter = relation_filter
        self.max_depth = max_depth
        self.exclude_resolved = exclude_resolved
        self.fields = fields

    def discover(
        self,
        root: WorkItem,
        relation_filter: Optional[str] = None,
        max_depth: Optional[int] = None,
    ) -> List[WorkItem]:
        """Return the linked items followed by their descendants, resolved ones dropped if requested."""
        return self.walk(root, relation_filter=relation_filter, max_depth=max_depth).items

    def walk(
        self,
        root: WorkItem,
        relation_filter: Optional[str] = None,
        max_depth: Optional[int] = None,
        exclude_resolved: Optional[bool] = None,
    ) -> Discovery:
        """Walk links and containment beneath ``root``.

        Linked items sit at depth 0; children of an item at depth ``d`` are
        looked up only while ``d < max_depth``, so nothing deeper than
        ``max_depth`` hops below a linked item is returned.
        """
        relation = relation_filter or self.relation_filter
        depth_limit = self.max_depth if max_depth is None else max_depth
        drop_resolved = self.exclude_resolved if exclude_resolved is None else exclude_resolved

        discovery = Discovery(root_key=root.key, linked_keys=linked_keys(root, relation))
        visited: Set[str] = {root.key, *discovery.linked_keys}

        for key in discovery.linked_keys:
            item = self._fetch_linked(key)
            if item is not None:
                discovery.nodes[key] = item

        stack: List[Tuple[str, int]] = [(key, 0) for key in reversed(discovery.linked_keys)]
        while stack:
            key, depth = stack.pop()
            if depth >= depth_limit:
                continue

            outcome = self.first_children(key)
            new_children: List[str] = []
            for child in outcome.items:
                if child.key in visited:
                    continue
                visited.add(child.key)
                discovery.nodes[child.key] = child
                new_children.append(child.key)

            if new_children:
                discovery.children[key] = new_children
                stack.extend((child_key, depth + 1) for child_key in reversed(new_children))

        if drop_resolved:
            discovery.excluded_keys = [key for key, item in discovery.nodes.items() if item.resolved]
            if discovery.excluded_keys:
                logger.debug(
                    "%s: excluded %d resolved item(s): %s",
                    root.key, discovery.excluded_count, ", ".join(discovery.excluded_keys)
                )

        logger.debug(
            "%s: %d linked item(s), %d item(s) discovered",
            root.key, len(discovery.linked_keys), len(discovery.nodes)
        )
        return discovery

    def children(self, key: str) -> List[WorkItem]:
        """Direct children of one item, using the first strategy that finds any."""
        return self.first_children(key).items

    def first_children(self, key: str) -> QueryOutcome:
        for strategy in self.strategies:
            outcome = self._attempt(strategy, key)
            if outcome.found:
                return outcome
        return QueryOutcome(strategy="none")

    def _attempt(self, strategy: ChildStrategy, key: str) -> QueryOutcome:
        try:
            items = strategy.run(self.client, key, self.fields)
        except PlannerError as e:
            logger.debug("Strategy %s failed for %s: %s", strategy.name, key, e.message)
            return QueryOutcome(strategy=strategy.name, error=e.message)
        return QueryOutcome(strategy=strategy.name, items=[item for item in items if item.key != key])

    def _fetch_linked(self, key: str) -> Optional[WorkItem]:
        try:
            return self.client.fetch_by_id(key, self.fields)
        except PlannerError as e:
            logger.warning("Could not fetch linked item %s, walking its children anyway: %s", key, e.message)
            return None
