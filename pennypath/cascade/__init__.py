"""Account deletion cascade package."""

from pennypath.cascade.executor import CascadeExecutor
from pennypath.cascade.planner import CascadePlanner, related_transfers

__all__ = ["CascadeExecutor", "CascadePlanner", "related_transfers"]
