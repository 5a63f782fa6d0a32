"""
Dependency resolution for services to determine startup order.
"""
import heapq
import logging
from typing import Dict, Iterable, List, Optional, Set

from ..MODELS.errors import CycleError, ParseError
from ..MODELS.topology import Topology

logger = logging.getLogger(__name__)


class DependencyResolver:
    """
    Resolves the startup order of services based on their dependencies.
    """
    def resolve_order(self, topology: Topology, targets: Optional[Iterable[str]] = None) -> List[str]:
        """
        Determines the order to start services in using a topological sort.

        Services that are not ordered relative to each other come out in
        declaration order, so the result is the same on every run.

        :param topology: The parsed topology.
        :param targets: Only order these services and what they depend on.
            All services when omitted.
        :return: Service names in the order they should be started.
        :raises CycleError: If a circular dependency is detected.
        :raises ParseError: If a target is not a declared service.
        """
        services = topology.services
        selected = self.select(topology, targets)
        self.check_cycles(topology, selected)

        position = {name: i for i, name in enumerate(services)}
        names = list(services)
        waiting: Dict[str, Set[str]] = {name: set(services[name].depends_on) for name in selected}
        dependents: Dict[str, List[str]] = {name: [] for name in selected}
        for name in names:
            if name in selected:
                for dep in services[name].depends_on:
                    dependents[dep].append(name)

        ready = [position[name] for name in names if name in selected and not waiting[name]]
        heapq.heapify(ready)
        ordered = []
        while ready:
            name = names[heapq.heappop(ready)]
            ordered.append(name)
            for dependent in dependents[name]:
                waiting[dependent].discard(name)
                if not waiting[dependent]:
                    heapq.heappush(ready, position[dependent])

        logger.debug("Resolved start order: %s", ', '.join(ordered))
        return ordered

    def select(self, topology: Topology, targets: Optional[Iterable[str]] = None) -> Set[str]:
        """
        Collects the target services plus everything they transitively depend on.

        :param topology: The parsed topology.
        :param targets: Service names, or None for all services.
        :return: The selected service names.
        """
        services = topology.services
        if targets is None:
            return set(services)

        selected: Set[str] = set()
        pending = []
        for name in targets:
            if name not in services:
                raise ParseError(f"no such service: {name}")
            pending.append(name)
        while pending:
            name = pending.pop()
            if name in selected:
                continue
            selected.add(name)
            pending.extend(services[name].depends_on)
        return selected

    def check_cycles(self, topology: Topology, selected: Optional[Set[str]] = None) -> None:
        """
        Walks the dependency graph depth first and fails on the first cycle.

        :param topology: The parsed topology.
        :param selected: Restrict the walk to these services.
        :raises CycleError: Naming every service on the cycle.
        """
        services = topology.services
        visited: Set[str] = set()
        in_progress: Set[str] = set()
        path: List[str] = []

        for root in services:
            if root in visited or (selected is not None and root not in selected):
                continue
            # explicit stack of (service, remaining dependencies); mirrors path
            in_progress.add(root)
            path.append(root)
            stack = [(root, iter(services[root].depends_on))]
            while stack:
                name, deps = stack[-1]
                dep = next(deps, None)
                if dep is None:
                    stack.pop()
                    path.pop()
                    in_progress.remove(name)
                    visited.add(name)
                elif dep in in_progress:
                    raise CycleError(path[path.index(dep):])
                elif dep not in visited:
                    in_progress.add(dep)
                    path.append(dep)
                    stack.append((dep, iter(services[dep].depends_on)))


def resolve(topology: Topology, targets: Optional[Iterable[str]] = None) -> List[str]:
    """
    Shortcut for ``DependencyResolver().resolve_order``.
    """
    return DependencyResolver().resolve_order(topology, targets)
