"""
Cycle Planner: capacity planning and delivery reporting on top of Jira and GitHub.

Discovers the work linked to product ideas, rolls up story points, and turns
them into cycle capacity estimates and markdown/CSV reports.
"""

try:
    from importlib.metadata import version
    __version__ = version("cycle-planner")
except Exception:
    __version__ = "0.0.0"  # Fallback for development

__all__ = ["__version__"]
