"""Git integration for execution context."""

from testintel.git.context import GitContext

__all__ = ["GitContext"]
