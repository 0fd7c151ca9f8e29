"""Build directed dependency graph from desired instances or state records."""

import networkx as nx
from typing import Dict, Iterable, List, Optional, Set
from ..ingest.models import ResourceInstance
from ..utils.errors import CycleDetectedError, UnresolvedReferenceError
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")


class DependencyGraph:
    """Directed dependency graph: nodes=logical names, edge A->B means A must exist before B."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._order: Dict[str, int] = {}

    def add_node(self, logical_name: str, **data) -> None:
        """Add a node, remembering the first-seen position for tie-breaking."""
        if logical_name not in self._order:
            self._order[logical_name] = len(self._order)
        self.graph.add_node(logical_name, **data)

    def add_dependency(self, dependency: str, dependent: str) -> None:
        """Record that ``dependency`` must exist before ``dependent``."""
        self.graph.add_edge(dependency, dependent)
        logger.debug(f"Added dependency edge: {dependency} -> {dependent}")

    def build_from_instances(self, instances: Iterable[ResourceInstance]) -> "DependencyGraph":
        """
        Build the graph from desired instances by walking their references.

        Raises:
            UnresolvedReferenceError: If an instance depends on a name not in the set
            CycleDetectedError: If the references form a cycle
        """
        instances = sorted(instances, key=lambda i: i.index)
        for instance in instances:
            self.add_node(instance.logical_name, resource_type=instance.resource_type, instance=instance)

        for instance in instances:
            for dependency in instance.dependency_names():
                if dependency not in self.graph:
                    raise UnresolvedReferenceError(dependency, instance.logical_name)
                self.add_dependency(dependency, instance.logical_name)

        self.check_acyclic()
        logger.info(
            f"Built dependency graph with {self.graph.number_of_nodes()} nodes "
            f"and {self.graph.number_of_edges()} edges"
        )
        return self

    def build_from_records(self, records: Iterable) -> "DependencyGraph":
        """
        Build the graph from state records using their recorded dependencies.

        Dependencies on names no longer present in state are ignored.
        """
        records = list(records)
        for record in records:
            self.add_node(record.logical_name, resource_type=record.resource_type, record=record)
        for record in records:
            for dependency in record.dependencies:
                if dependency in self.graph:
                    self.add_dependency(dependency, record.logical_name)
                else:
                    logger.debug(f"Recorded dependency {dependency} of {record.logical_name} is not in state")
        self.check_acyclic()
        return self

    def check_acyclic(self) -> None:
        """Raise CycleDetectedError naming the instances of one cycle, if any."""
        try:
            cycle = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            return
        names = [edge[0] for edge in cycle]
        raise CycleDetectedError(names)

    def topological_order(self) -> List[str]:
        """
        Return every node after all of its dependencies.

        Ties are broken by declaration order so the result is deterministic.
        """
        self.check_acyclic()
        return list(nx.lexicographical_topological_sort(self.graph, key=lambda n: self._order.get(n, 0)))

    def reverse_topological_order(self) -> List[str]:
        """Return every node before all of its dependencies (deletion order)."""
        self.check_acyclic()
        reversed_graph = self.graph.reverse(copy=True)
        return list(nx.lexicographical_topological_sort(reversed_graph, key=lambda n: self._order.get(n, 0)))

    def direct_dependencies(self, logical_name: str) -> List[str]:
        if logical_name not in self.graph:
            return []
        return sorted(self.graph.predecessors(logical_name), key=self._order.get)

    def direct_dependents(self, logical_name: str) -> List[str]:
        if logical_name not in self.graph:
            return []
        return sorted(self.graph.successors(logical_name), key=self._order.get)

    def dependencies_of(self, logical_name: str) -> Set[str]:
        """All instances ``logical_name`` depends on, transitively (upstream)."""
        if logical_name not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, logical_name))

    def dependents_of(self, logical_name: str) -> Set[str]:
        """All instances that depend on ``logical_name``, transitively (downstream)."""
        if logical_name not in self.graph:
            return set()
        return set(nx.descendants(self.graph, logical_name))

    def get_instance(self, logical_name: str) -> Optional[ResourceInstance]:
        if logical_name not in self.graph:
            return None
        return self.graph.nodes[logical_name].get("instance")

    def __contains__(self, logical_name: str) -> bool:
        return logical_name in self.graph

    def __len__(self) -> int:
        return self.graph.number_of_nodes()
