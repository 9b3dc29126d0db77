"""
Story point roll-up.

An explicit estimate on an item always wins over the sum of its children,
so hand-rolled estimates on epics are never double counted.
"""

from typing import Dict, List, Tuple

from cycle_planner.core.hierarchy import Discovery, HierarchyWalker
from cycle_planner.models import WorkItem


def aggregate_effort(item: WorkItem, walker: HierarchyWalker) -> float:
    """Effort of a single item.

    Items with their own estimate return it. Containers without one return
    the sum of their direct children's own estimates. Anything else is zero.
    """
    if item.own_effort > 0:
        return item.own_effort
    if item.is_container:
        return sum_effort(walker.children(item.key))
    return 0.0


def rollup_effort(discovery: Discovery) -> float:
    """Total effort over a whole discovery.

    Each linked item counts its own estimate if it has one, otherwise the
    rolled-up totals of its discovered children, recursively. Excluded
    (resolved) items contribute nothing themselves but their children are
    still considered.
    """
    totals: Dict[str, float] = {}
    stack: List[Tuple[str, bool]] = [(key, False) for key in reversed(discovery.linked_keys)]

    while stack:
        key, children_done = stack.pop()
        if key in totals:
            continue
        children = discovery.children.get(key, [])
        if children_done:
            own = discovery.own_effort(key)
            totals[key] = own if own > 0 else sum(totals.get(child, 0.0) for child in children)
            continue
        stack.append((key, True))
        stack.extend((child, False) for child in reversed(children))

    return sum(totals.get(key, 0.0) for key in discovery.linked_keys)


def sum_effort(items: List[WorkItem]) -> float:
    """Plain sum of own estimates, missing values counting as zero."""
    return sum(item.own_effort for item in items)
