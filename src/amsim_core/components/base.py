# src/amsim_core/components/base.py

import logging
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Type, TYPE_CHECKING

from ..quantities import Branch, Domain, Quantity, QuantityKind
from .capabilities import ModelCapability, TCapability
from .exceptions import ModelDefinitionError, ParameterConstraintError
from .parameters import ParameterSpec, bind_parameters

if TYPE_CHECKING:
    from ..simulation.evaluator import EvaluationContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Evaluation:
    """
    The outcome of one residual evaluation of a model.

    Attributes:
        residuals: One expression per branch and per internal quantity, in
                   declaration order. Elements may be floats or jax tracers.
        mode: The mode tag the model dispatched on, or None for smooth models.
    """
    residuals: Sequence[Any]
    mode: Any = None


class ModelBase(ABC):
    """
    The abstract base class for every device model.

    A model binds its generic parameters once at construction, then declares its
    branches, internal quantities and discrete signals in `setup()`. After that it
    is immutable: `evaluate` and `information` are pure functions of the context
    they are given, so evaluating twice at the same context returns the same
    residuals.
    """
    model_type_str: ClassVar[str] = "BaseModel"

    def __init__(
        self,
        instance_id: str,
        parameters: Optional[Mapping[str, Any]] = None,
        parent_id: str = "top",
    ):
        self.instance_id: str = instance_id
        self.parent_id: str = parent_id
        self.params: Mapping[str, Any] = bind_parameters(self.fqn, type(self).declare_parameters(), parameters)

        self.branches: Dict[str, Branch] = {}
        self.internals: Dict[str, Quantity] = {}
        self.signals: Dict[str, Quantity] = {}
        self.signal_initials: Dict[Quantity, float] = {}
        self._labels: set = set()

        self._capability_cache: Dict[Type[ModelCapability], ModelCapability] = {}

        self.setup()
        logger.debug(
            f"Initialized {type(self).__name__} '{self.fqn}' with {len(self.branches)} branch(es), "
            f"{len(self.internals)} internal quantity(ies), {len(self.signals)} signal(s)."
        )

    @property
    def fqn(self) -> str:
        """The fully qualified name of this model instance."""
        return f"{self.parent_id}.{self.instance_id}"

    @property
    def terminal_domains(self) -> Dict[str, Domain]:
        """Domain of every terminal. Domain-generic models override this per instance."""
        return dict(type(self).declare_terminals())

    @property
    def residual_count(self) -> int:
        return len(self.branches) + len(self.internals)

    @property
    def unknowns(self) -> List[Quantity]:
        """Continuous unknowns owned by this model, in registration order."""
        owned: List[Quantity] = []
        for branch in self.branches.values():
            owned.extend((branch.across, branch.through))
        owned.extend(self.internals.values())
        return owned

    # --- Declaration helpers, for use in setup() ---

    def _claim(self, label: str) -> str:
        if label in self._labels:
            raise ModelDefinitionError(self.fqn, f"Quantity label '{label}' is declared twice.")
        self._labels.add(label)
        return f"{self.fqn}.{label}"

    def branch(
        self,
        name: str,
        plus: str,
        minus: Optional[str] = None,
        across: Optional[str] = None,
        through: Optional[str] = None,
    ) -> Branch:
        """Declares a branch between two terminals; `minus=None` returns to the reference."""
        domains = self.terminal_domains
        for terminal in (plus, minus):
            if terminal is not None and terminal not in domains:
                raise ModelDefinitionError(self.fqn, f"Branch '{name}' uses undeclared terminal '{terminal}'.")
        domain = domains[plus]
        if minus is not None and domains[minus] is not domain:
            raise ModelDefinitionError(
                self.fqn, f"Branch '{name}' joins terminals of different domains ({plus}, {minus})."
            )
        if name in self.branches:
            raise ModelDefinitionError(self.fqn, f"Branch '{name}' is declared twice.")
        across_q = Quantity(self._claim(across or domain.across_name), domain, QuantityKind.ACROSS, domain.across_unit)
        through_q = Quantity(self._claim(through or domain.through_name), domain, QuantityKind.THROUGH, domain.through_unit)
        branch = Branch(name, domain, plus, minus, across_q, through_q)
        self.branches[name] = branch
        return branch

    def quantity(self, name: str, unit: str = "", domain: Domain = Domain.REAL) -> Quantity:
        """Declares an internal (terminal-less) unknown."""
        q = Quantity(self._claim(name), domain, QuantityKind.FREE, unit)
        self.internals[name] = q
        return q

    def signal(self, name: str, initial_value: float) -> Quantity:
        """Declares a discrete, scheduler-driven signal."""
        s = Quantity(self._claim(name), Domain.REAL, QuantityKind.SIGNAL)
        self.signals[name] = s
        self.signal_initials[s] = float(initial_value)
        return s

    def require(self, condition: bool, details: str, **values: Any) -> None:
        """Raises `ParameterConstraintError` unless `condition` holds."""
        if not condition:
            raise ParameterConstraintError(model_fqn=self.fqn, details=details, parameters=values)

    # --- Capabilities ---

    @classmethod
    def declare_capabilities(cls) -> Dict[Type[ModelCapability], Type]:
        """
        Discovers the nested `@provides` classes over the whole MRO; the most
        derived implementation of a capability wins.
        """
        discovered = {}
        for base_class in cls.__mro__:
            for _, member_obj in inspect.getmembers(base_class):
                if hasattr(member_obj, '_implements_capability'):
                    protocol = member_obj._implements_capability
                    if protocol not in discovered:
                        discovered[protocol] = member_obj
        return discovered

    def get_capability(self, capability_type: Type[TCapability]) -> Optional[TCapability]:
        """Returns the (cached) capability implementation, or None if unsupported."""
        if capability_type in self._capability_cache:
            return self._capability_cache[capability_type]

        impl_class = type(self).declare_capabilities().get(capability_type)
        if impl_class:
            instance = impl_class()
            self._capability_cache[capability_type] = instance
            return instance
        return None

    # --- Contract ---

    @classmethod
    @abstractmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        """Declare parameter names with their SI unit, default and kind."""
        pass

    @classmethod
    @abstractmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        """
        Declare the terminal names and their domains. `None` marks a terminal
        whose domain is chosen per instance (see `terminal_domains`).
        """
        pass

    @abstractmethod
    def setup(self) -> None:
        """Validate parameter constraints and declare branches, quantities and signals."""
        pass

    @abstractmethod
    def evaluate(self, ctx: "EvaluationContext") -> Evaluation:
        """Compute the residuals at `ctx` using the committed mode from `ctx.mode(self)`."""
        pass

    def information(self, ctx: "EvaluationContext") -> Dict[str, float]:
        """For-information outputs at a committed, concrete context."""
        return {}

    def __str__(self) -> str:
        return f"{type(self).__name__}('{self.fqn}')"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(fqn='{self.fqn}')"


# --- Global Model Registry and Decorator ---

MODEL_REGISTRY: Dict[str, Type[ModelBase]] = {}


def register_model(type_str: str):
    """
    A class decorator registering a model class in the global registry after
    validating its declaration contract.
    """
    def decorator(cls: Type[ModelBase]):
        if not issubclass(cls, ModelBase):
            raise TypeError(f"Class {cls.__name__} must inherit from ModelBase.")

        try:
            terminals = cls.declare_terminals()
            if not isinstance(terminals, dict) or not all(
                isinstance(k, str) and k and (v is None or isinstance(v, Domain)) for k, v in terminals.items()
            ):
                raise TypeError(
                    f"declare_terminals() must return a Dict[str, Optional[Domain]], but returned: {terminals}."
                )
        except Exception as e:
            raise TypeError(
                f"A failure occurred while validating the contract of model class '{cls.__name__}'. "
                f"Error during call to declare_terminals(): {e}"
            ) from e

        try:
            params = cls.declare_parameters()
            if not isinstance(params, dict) or not all(
                isinstance(k, str) and isinstance(v, ParameterSpec) for k, v in params.items()
            ):
                raise TypeError(
                    f"declare_parameters() must return a Dict[str, ParameterSpec], "
                    f"but returned a value of type '{type(params).__name__}'."
                )
        except Exception as e:
            raise TypeError(
                f"A failure occurred while validating the contract of model class '{cls.__name__}'. "
                f"Error during call to declare_parameters(): {e}"
            ) from e

        if type_str in MODEL_REGISTRY:
            logger.warning(f"Model type '{type_str}' is being redefined/overwritten.")
        cls.model_type_str = type_str
        MODEL_REGISTRY[type_str] = cls
        logger.info(f"Registered model type '{type_str}' -> {cls.__name__}")
        return cls
    return decorator
