from abc import ABC, abstractmethod
from typing import Any, Dict

from core.cache.keys import RecordKey


class EngineBehavior(ABC):
    """
    Abstract base class for engine behaviours whose fitted parameters are cached.
    Subclasses implement fit_parameters(); the class name is the record's kind.
    """

    def __init__(self, template_name: str, engine_id: str = "") -> None:
        """
        Initialize the engine behaviour.

        Args:
            template_name: Name of the part this engine is attached to.
            engine_id: User-assigned id telling apart engines of the same kind on one part.
        """
        self.template_name = template_name
        self.engine_id = engine_id

    @property
    def kind_name(self) -> str:
        return type(self).__name__

    def record_key(self) -> RecordKey:
        return RecordKey(self.template_name, self.kind_name, self.engine_id)

    @abstractmethod
    def fit_parameters(self) -> Dict[str, Any]:
        """
        Fit this engine's parameters.

        Returns:
            A mapping of parameter names to scalars or lists of scalars.
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.kind_name} on {self.template_name} id={self.engine_id!r}>"
