"""Planning core: text normalisation, section extraction, discovery and capacity math."""

from cycle_planner.core.richtext import normalize, html_to_text
from cycle_planner.core.sections import extract_sections
from cycle_planner.core.hierarchy import HierarchyWalker, Discovery
from cycle_planner.core.effort import aggregate_effort, rollup_effort
from cycle_planner.core.capacity import estimate, velocity_from_history, pto_reduction_factor
from cycle_planner.core.assembler import CyclePlanner, plan_cycle

__all__ = [
    "normalize",
    "html_to_text",
    "extract_sections",
    "HierarchyWalker",
    "Discovery",
    "aggregate_effort",
    "rollup_effort",
    "estimate",
    "velocity_from_history",
    "pto_reduction_factor",
    "CyclePlanner",
    "plan_cycle",
]
