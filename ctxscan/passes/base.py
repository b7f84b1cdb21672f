"""Base class for built-in analysis passes."""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from ..models import ContextDelta, WorkspaceContext
from ..pipeline.base import PassLogger


class Pass(ABC):
    """Convenience base for passes declared as classes.

    Subclasses set the metadata as class attributes. Plugins do not have to
    inherit from it; any object matching ``AnalysisPass`` is accepted.
    """

    name: str = ""
    description: str = ""
    dependencies: Tuple[str, ...] = ()
    config_keys: Tuple[str, ...] = ()

    @abstractmethod
    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> Optional[ContextDelta]:
        """Read ``ctx`` and return the additions this pass contributes."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
