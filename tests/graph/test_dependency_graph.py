"""Tests for dependency graph."""

import pytest
from stackform.graph.dependency_graph import DependencyGraph
from stackform.ingest.models import Reference, ResourceInstance
from stackform.state.models import StateRecord
from stackform.utils.errors import CycleDetectedError, UnresolvedReferenceError


def _instance(name, index, *targets, depends_on=()):
    resource_type = name.split(".")[0]
    attributes = {f"ref_{i}": Reference(target=t) for i, t in enumerate(targets)}
    return ResourceInstance(
        logical_name=name,
        resource_type=resource_type,
        name=name.split(".")[1],
        attributes=attributes,
        depends_on=list(depends_on),
        index=index,
    )


@pytest.fixture
def sample_instances():
    """VPC <- subnet <- instance, plus an unrelated security group declared first."""
    return [
        _instance("cloud_security_group.web", 0),
        _instance("cloud_vpc.main", 1),
        _instance("cloud_instance.web", 2, "cloud_subnet.app", "cloud_security_group.web"),
        _instance("cloud_subnet.app", 3, "cloud_vpc.main"),
    ]


class TestDependencyGraph:
    """Test dependency graph construction."""

    def test_build_graph_from_instances(self, sample_instances):
        """Nodes are instances, edges follow references."""
        graph = DependencyGraph().build_from_instances(sample_instances)

        assert len(graph) == 4
        assert graph.graph.number_of_edges() == 3
        assert "cloud_vpc.main" in graph
        assert graph.get_instance("cloud_vpc.main").logical_name == "cloud_vpc.main"

    def test_topological_order_respects_references(self, sample_instances):
        """Every instance comes after all instances it references."""
        order = DependencyGraph().build_from_instances(sample_instances).topological_order()
        position = {name: i for i, name in enumerate(order)}

        for instance in sample_instances:
            for dependency in instance.dependency_names():
                assert position[dependency] < position[instance.logical_name]

    def test_ties_broken_by_declaration_order(self, sample_instances):
        """Independent instances keep their declaration order."""
        order = DependencyGraph().build_from_instances(sample_instances).topological_order()
        assert order == ["cloud_security_group.web", "cloud_vpc.main", "cloud_subnet.app", "cloud_instance.web"]

    def test_reverse_order(self, sample_instances):
        """Reverse order places dependents before their dependencies."""
        order = DependencyGraph().build_from_instances(sample_instances).reverse_topological_order()
        assert order.index("cloud_instance.web") < order.index("cloud_subnet.app") < order.index("cloud_vpc.main")
        assert order.index("cloud_instance.web") < order.index("cloud_security_group.web")

    def test_upstream_and_downstream(self, sample_instances):
        """Transitive dependencies and dependents."""
        graph = DependencyGraph().build_from_instances(sample_instances)

        assert graph.dependencies_of("cloud_instance.web") == {
            "cloud_subnet.app", "cloud_vpc.main", "cloud_security_group.web"
        }
        assert graph.dependents_of("cloud_vpc.main") == {"cloud_subnet.app", "cloud_instance.web"}
        assert graph.direct_dependencies("cloud_instance.web") == ["cloud_security_group.web", "cloud_subnet.app"]
        assert graph.direct_dependents("cloud_vpc.main") == ["cloud_subnet.app"]
        assert graph.dependents_of("cloud_vpc.unknown") == set()

    def test_depends_on_edges(self):
        """Explicit depends_on adds an edge."""
        graph = DependencyGraph().build_from_instances([
            _instance("cloud_vpc.a", 0),
            _instance("cloud_vpc.b", 1, depends_on=["cloud_vpc.a"]),
        ])
        assert graph.topological_order() == ["cloud_vpc.a", "cloud_vpc.b"]

    def test_unresolved_dependency(self):
        """A reference outside the instance set is an error."""
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            DependencyGraph().build_from_instances([_instance("cloud_subnet.app", 0, "cloud_vpc.main")])
        assert exc_info.value.logical_name == "cloud_subnet.app"


class TestCycles:
    """Test cycle detection."""

    def test_two_node_cycle(self):
        """A reference cycle fails with the participating instances."""
        with pytest.raises(CycleDetectedError) as exc_info:
            DependencyGraph().build_from_instances([
                _instance("cloud_vpc.a", 0, "cloud_vpc.b"),
                _instance("cloud_vpc.b", 1, "cloud_vpc.a"),
            ])
        assert set(exc_info.value.cycle) == {"cloud_vpc.a", "cloud_vpc.b"}
        assert "->" in str(exc_info.value)

    def test_self_reference(self):
        """An instance referencing itself is a cycle."""
        with pytest.raises(CycleDetectedError):
            DependencyGraph().build_from_instances([_instance("cloud_vpc.a", 0, "cloud_vpc.a")])

    def test_cycle_behind_acyclic_prefix(self):
        """No partial ordering is produced when any part of the graph is cyclic."""
        graph = DependencyGraph()
        for name in ("cloud_vpc.root", "cloud_vpc.x", "cloud_vpc.y"):
            graph.add_node(name)
        graph.add_dependency("cloud_vpc.root", "cloud_vpc.x")
        graph.add_dependency("cloud_vpc.x", "cloud_vpc.y")
        graph.add_dependency("cloud_vpc.y", "cloud_vpc.x")

        with pytest.raises(CycleDetectedError) as exc_info:
            graph.topological_order()
        assert "cloud_vpc.root" not in exc_info.value.cycle


class TestRecordGraph:
    """Test graphs built from state records."""

    def test_missing_dependencies_ignored(self):
        """Recorded dependencies that are no longer in state are dropped."""
        records = [
            StateRecord(logical_name="cloud_subnet.app", resource_type="cloud_subnet", provider_id="subnet-1",
                        dependencies=["cloud_vpc.gone"]),
            StateRecord(logical_name="cloud_instance.web", resource_type="cloud_instance", provider_id="i-1",
                        dependencies=["cloud_subnet.app"]),
        ]
        graph = DependencyGraph().build_from_records(records)
        assert graph.reverse_topological_order() == ["cloud_instance.web", "cloud_subnet.app"]
