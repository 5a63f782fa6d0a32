"""
Unit tests for dependency ordering and cycle detection.
"""
import random

import pytest

from stackplan.MODELS.errors import CycleError, ParseError
from stackplan.MODELS.topology import ServiceSpec, Topology
from stackplan.RUNNERS.dependency_resolver import DependencyResolver, resolve


def make_topology(edges):
    """Builds a topology from ``{name: [dependencies]}``, keeping key order."""
    return Topology(services={
        name: ServiceSpec(name=name, image=f"{name}:latest", depends_on=tuple(deps))
        for name, deps in edges.items()
    })


class TestDependencyResolver:
    """Tests for DependencyResolver."""

    def test_blog_order(self, blog_topology):
        """Test that the database starts before the web app."""
        assert resolve(blog_topology) == ['db', 'web']

    def test_declaration_order_for_independent_services(self):
        """Test that unrelated services keep their declared order."""
        topology = make_topology({'x': [], 'y': [], 'z': []})
        assert resolve(topology) == ['x', 'y', 'z']

    def test_tie_break_is_declaration_order(self):
        """Test that a service is only pulled forward when a dependency requires it."""
        topology = make_topology({'a': ['c'], 'b': [], 'c': []})
        assert resolve(topology) == ['b', 'c', 'a']

    def test_diamond(self):
        """Test a diamond-shaped graph."""
        topology = make_topology({
            'web': ['api', 'assets'],
            'api': ['db'],
            'assets': ['db'],
            'db': [],
        })
        assert resolve(topology) == ['db', 'api', 'assets', 'web']

    def test_order_is_stable_across_runs(self):
        """Test that resolving twice gives the same order."""
        topology = make_topology({'a': ['b'], 'b': [], 'c': ['b'], 'd': []})
        assert resolve(topology) == resolve(topology)

    def test_two_service_cycle(self):
        """Test that A <-> B is reported with both members."""
        topology = make_topology({'A': ['B'], 'B': ['A']})
        with pytest.raises(CycleError) as excinfo:
            resolve(topology)
        assert excinfo.value.members == {'A', 'B'}
        assert 'Circular dependency detected' in str(excinfo.value)

    def test_cycle_members_independent_of_declaration_order(self):
        """Test that the reported cycle does not depend on declaration order."""
        forward = make_topology({'A': ['B'], 'B': ['A']})
        backward = make_topology({'B': ['A'], 'A': ['B']})
        with pytest.raises(CycleError) as first:
            resolve(forward)
        with pytest.raises(CycleError) as second:
            resolve(backward)
        assert first.value.members == second.value.members == {'A', 'B'}

    def test_longer_cycle_excludes_bystanders(self):
        """Test that only services on the cycle are named."""
        topology = make_topology({
            'entry': ['a'],
            'a': ['b'],
            'b': ['c'],
            'c': ['a'],
            'other': [],
        })
        with pytest.raises(CycleError) as excinfo:
            resolve(topology)
        assert excinfo.value.members == {'a', 'b', 'c'}
        assert len(excinfo.value.cycle) == 3

    def test_self_dependency(self):
        """Test that a service depending on itself is a cycle of one."""
        topology = make_topology({'loop': ['loop']})
        with pytest.raises(CycleError) as excinfo:
            resolve(topology)
        assert excinfo.value.cycle == ('loop',)

    def test_targets_pull_in_dependencies(self):
        """Test restricting the order to some services."""
        topology = make_topology({'db': [], 'worker': ['db'], 'cache': [], 'web': ['cache', 'db']})
        assert resolve(topology, ['web']) == ['db', 'cache', 'web']
        assert resolve(topology, ['db']) == ['db']

    def test_unknown_target(self):
        """Test that asking for an undeclared service fails."""
        with pytest.raises(ParseError, match='no such service: api'):
            resolve(make_topology({'db': []}), ['api'])

    def test_cycle_outside_targets_is_ignored(self):
        """Test that only the selected part of the graph is checked."""
        topology = make_topology({'db': [], 'a': ['b'], 'b': ['a']})
        assert DependencyResolver().resolve_order(topology, ['db']) == ['db']

    def test_empty_topology(self):
        """Test that nothing to order gives an empty order."""
        assert resolve(Topology()) == []

    @pytest.mark.parametrize('seed', range(20))
    def test_random_acyclic_graphs(self, seed):
        """Test that every dependency precedes its dependent on random DAGs."""
        rng = random.Random(seed)
        names = [f"svc{i}" for i in range(rng.randint(1, 15))]
        # only depend on earlier names, then shuffle declaration order
        edges = {
            name: rng.sample(names[:i], rng.randint(0, min(i, 3)))
            for i, name in enumerate(names)
        }
        declared = list(names)
        rng.shuffle(declared)
        topology = make_topology({name: edges[name] for name in declared})

        order = resolve(topology)
        assert sorted(order) == sorted(names)
        position = {name: i for i, name in enumerate(order)}
        for name, deps in edges.items():
            for dep in deps:
                assert position[dep] < position[name]
