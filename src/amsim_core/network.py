# src/amsim_core/network.py
"""
Assembly of model instances into a solvable network.

A `Network` maps every model terminal to a named node. Node names are global
across domains, except for the reference node `gnd`, which exists once per
physical domain and has potential zero (0 V, 0 K, 0 m). Each non-reference node
contributes one potential unknown and one conservation equation; each model
branch contributes its across/through pair.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, TypeVar

import networkx as nx
import numpy as np

from .constants import DEFAULT_INITIAL_TEMPERATURE_K, REFERENCE_NODE_NAME
from .components.base import MODEL_REGISTRY, ModelBase
from .errors import DiagnosableError, ModelBuildError, format_diagnostic_report
from .quantities import Branch, Domain, Quantity, QuantityKind, StateVector

logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=ModelBase)


@dataclass()
class NetworkTopologyError(DiagnosableError):
    """Raised for wiring errors: unknown or missing terminals, domain clashes, floating nodes."""
    network: str
    details: str

    def __str__(self):
        return f"Topology error in network '{self.network}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Network Topology Error",
            details=self.details,
            suggestion=(
                "Connect every terminal, keep each node within one physical domain, and make sure "
                f"every node has a path to the '{REFERENCE_NODE_NAME}' node of its domain."
            ),
            context={'fqn': self.network}
        )


class Network:
    """A set of model instances and the nodes their terminals are wired to."""

    def __init__(self, name: str = "top"):
        self.name = name
        self.models: Dict[str, ModelBase] = {}
        self._nodes: Dict[str, Domain] = {}
        self._potentials: Dict[str, Quantity] = {}
        self._connections: Dict[str, Dict[str, str]] = {}

    # --- Construction ---

    def node(self, name: str, domain: Domain) -> str:
        """Declares (or re-uses) a node of the given domain."""
        if name == REFERENCE_NODE_NAME:
            return name
        existing = self._nodes.get(name)
        if existing is None:
            self._nodes[name] = domain
            self._potentials[name] = Quantity(name, domain, QuantityKind.POTENTIAL, domain.across_unit)
        elif existing is not domain:
            raise NetworkTopologyError(
                self.name, f"Node '{name}' is used in both the {existing.name} and {domain.name} domains."
            )
        return name

    def reference(self, domain: Domain) -> str:
        return REFERENCE_NODE_NAME

    def add(self, model: TModel, **connections: str) -> TModel:
        """Adds a model and wires its terminals, e.g. `add(r1, p="in", n="gnd")`."""
        if model.fqn in self.models:
            raise NetworkTopologyError(self.name, f"A model named '{model.fqn}' is already part of the network.")
        domains = model.terminal_domains
        unknown = sorted(set(connections) - set(domains))
        if unknown:
            raise NetworkTopologyError(
                self.name, f"'{model.fqn}' has no terminal(s) {unknown}; it declares {sorted(domains)}."
            )
        for terminal, node_name in connections.items():
            self.node(node_name, domains[terminal])
        self.models[model.fqn] = model
        self._connections[model.fqn] = dict(connections)
        logger.debug(f"Added {model} to network '{self.name}' with connections {connections}.")
        return model

    def create(
        self,
        type_str: str,
        instance_id: str,
        parameters: Optional[Mapping[str, Any]] = None,
        **connections: str,
    ) -> ModelBase:
        """
        Instantiates a registered model type by name and adds it, e.g.
        `create("Resistor", "r1", {"resistance": "4.7 kohm"}, p="in", n="gnd")`.

        Raises:
            ModelBuildError: With a diagnostic report if the type is unknown, a
                             parameter is invalid, or the wiring is rejected.
        """
        try:
            model_class = MODEL_REGISTRY.get(type_str)
            if model_class is None:
                raise NetworkTopologyError(
                    self.name, f"Unknown model type '{type_str}'; registered types: {sorted(MODEL_REGISTRY)}."
                )
            model = model_class(instance_id, parameters=dict(parameters or {}), parent_id=self.name)
            return self.add(model, **connections)

        except DiagnosableError as e:
            raise ModelBuildError(e.get_diagnostic_report()) from e

        except Exception as e:
            report = format_diagnostic_report(
                error_type=f"An Unexpected Error Occurred ({type(e).__name__})",
                details=f"Building '{instance_id}' of type '{type_str}' failed unexpectedly: {e}",
                suggestion="This may indicate a bug in amsim_core. Please review the traceback.",
                context={}
            )
            raise ModelBuildError(report) from e

    # --- Queries ---

    @property
    def nodes(self) -> Dict[str, Domain]:
        """Every non-reference node and its domain."""
        return dict(self._nodes)

    def potential(self, node: Optional[str]) -> Optional[Quantity]:
        """The potential unknown of a node, or None for the reference."""
        if node is None or node == REFERENCE_NODE_NAME:
            return None
        return self._potentials[node]

    def node_of(self, model: ModelBase, terminal: Optional[str]) -> Optional[str]:
        """The node a terminal is wired to; None stands for the reference node."""
        if terminal is None:
            return None
        node = self._connections[model.fqn][terminal]
        return None if node == REFERENCE_NODE_NAME else node

    def branch_nodes(self, model: ModelBase, branch: Branch) -> Tuple[Optional[str], Optional[str]]:
        return self.node_of(model, branch.plus), self.node_of(model, branch.minus)

    def branches(self) -> List[Tuple[ModelBase, Branch]]:
        return [(model, branch) for model in self.models.values() for branch in model.branches.values()]

    # --- Validation and state ---

    def validate(self) -> None:
        """
        Checks that every terminal is wired and that every node can reach the
        reference of its domain through model branches.
        """
        if not self.models:
            raise NetworkTopologyError(self.name, "The network contains no models.")
        for fqn, model in self.models.items():
            missing = sorted(set(model.terminal_domains) - set(self._connections[fqn]))
            if missing:
                raise NetworkTopologyError(self.name, f"Terminal(s) {missing} of '{fqn}' are not connected.")

        graph = nx.Graph()
        graph.add_nodes_from((domain, name) for name, domain in self._nodes.items())
        for model, branch in self.branches():
            plus, minus = self.branch_nodes(model, branch)
            graph.add_edge((branch.domain, plus or REFERENCE_NODE_NAME), (branch.domain, minus or REFERENCE_NODE_NAME))

        floating = sorted(
            name for name, domain in self._nodes.items()
            if (domain, REFERENCE_NODE_NAME) not in graph
            or not nx.has_path(graph, (domain, name), (domain, REFERENCE_NODE_NAME))
        )
        if floating:
            raise NetworkTopologyError(
                self.name, f"Node(s) {floating} have no path to the reference node of their domain."
            )
        logger.info(
            f"Network '{self.name}' validated: {len(self.models)} model(s), {len(self._nodes)} node(s), "
            f"{graph.number_of_edges()} branch edge(s)."
        )

    def build_state(self) -> StateVector:
        """Registers node potentials, then every model's unknowns and signals, in a new state vector."""
        state = StateVector()
        for potential in self._potentials.values():
            state.register(potential)
        for model in self.models.values():
            for quantity in model.unknowns:
                state.register(quantity)
            for signal, initial in model.signal_initials.items():
                state.register_signal(signal, initial)
        logger.debug(f"Built {state!r} for network '{self.name}'.")
        return state

    def initial_guess(self, state: StateVector, initial_temperature: float = DEFAULT_INITIAL_TEMPERATURE_K) -> np.ndarray:
        """
        Loads the starting point of the quiescent solve: thermal nodes at
        `initial_temperature`, every other potential at zero, branch across
        quantities consistent with those potentials, everything else zero.
        """
        guess = np.zeros(state.size)
        level: Dict[Optional[str], float] = {None: 0.0}
        for name, potential in self._potentials.items():
            level[name] = initial_temperature if potential.domain is Domain.THERMAL else 0.0
            guess[state.index_of(potential)] = level[name]
        for model, branch in self.branches():
            plus, minus = self.branch_nodes(model, branch)
            guess[state.index_of(branch.across)] = level[plus] - level[minus]
        state.load(guess, np.zeros(state.size), state.time)
        return guess
