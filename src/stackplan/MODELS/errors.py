# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Exceptions raised while parsing, resolving, rendering and running topologies.
"""
from dataclasses import dataclass
from typing import Any, FrozenSet, Optional, Sequence, Tuple


class StackplanError(Exception):
    """Base exception for all stackplan errors."""


class ParseError(StackplanError):
    """Raised when a topology document is malformed or inconsistent.

    Attributes:
        location: Dotted path of the offending node, e.g. ``services.web.ports[0]``.
    """

    def __init__(self, message: str, location: Optional[str] = None) -> None:
        self.location = location
        if location:
            message = f"{location}: {message}"
        super().__init__(message)


class CycleError(StackplanError):
    """Raised when the ``depends_on`` graph contains a cycle.

    Attributes:
        cycle: Services along the cycle, in traversal order.
        members: The same services as a set.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle: Tuple[str, ...] = tuple(cycle)
        self.members: FrozenSet[str] = frozenset(self.cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Circular dependency detected: {path}")


@dataclass(frozen=True)
class MissingBinding:
    """A required environment variable that had no value at render time."""

    service: str
    binding: str
    variable: str

    def __str__(self) -> str:
        if self.binding == self.variable:
            return f"{self.service}: {self.variable}"
        return f"{self.service}: {self.binding} (needs {self.variable})"


class MissingBindingError(StackplanError):
    """Raised when required environment bindings cannot be resolved.

    Every missing binding of every rendered service is collected before
    this is raised.

    Attributes:
        missing: The unresolved bindings, in render order.
    """

    def __init__(self, missing: Sequence[MissingBinding]) -> None:
        self.missing: Tuple[MissingBinding, ...] = tuple(missing)
        listing = "; ".join(str(m) for m in self.missing)
        super().__init__(f"Missing required environment variables: {listing}")

    @property
    def variables(self) -> FrozenSet[str]:
        return frozenset(m.variable for m in self.missing)

    def for_service(self, service: str) -> Tuple[MissingBinding, ...]:
        return tuple(m for m in self.missing if m.service == service)


class ExecutionError(StackplanError):
    """Raised when the executor reports a failed step.

    The executor's result is carried unchanged; nothing is retried.

    Attributes:
        step: The step that failed.
        result: The ``ExecutionResult`` the executor returned for it.
    """

    def __init__(self, step: Any, result: Any) -> None:
        self.step = step
        self.result = result
        message = f"Step {step.describe()} failed with exit code {result.exit_code}"
        if result.detail:
            message += f": {result.detail}"
        super().__init__(message)

    @property
    def exit_code(self) -> int:
        """Process exit code to report; never 0 for a failure.

        A negative code means the step was killed by that signal and is
        reported as ``128 + signal``, as a shell would.
        """
        code = self.result.exit_code
        if code < 0:
            return 128 - code
        return code or 1
