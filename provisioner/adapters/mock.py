"""
Mock adapter — stands in for every step adapter.

``provision apply --mock`` dispatches here instead of touching the
system, and the tests use it with a side-effect hook that flips a
fake system's checks as if the step had run.
"""

from __future__ import annotations

from collections.abc import Callable

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt


class MockAdapter(Adapter):
    """Records every context it receives and succeeds by default.

    Canned receipts are keyed by action id or by owning capability
    id; a canned receipt short-circuits the side effect, so a failed
    step leaves the fake system untouched.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
        side_effect: Callable[[ExecutionContext], None] | None = None,
    ):
        self.name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self.call_log: list[ExecutionContext] = []
        self.side_effect = side_effect

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    def calls_for(self, capability: str) -> list[ExecutionContext]:
        return [c for c in self.call_log if c.action.capability == capability]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, key: str, receipt: Receipt) -> None:
        self._responses[key] = receipt

    def set_failure(self, key: str, error: str = "Mock failure") -> None:
        """Fail one action id, or every action of a capability."""
        self._responses[key] = Receipt.failure(adapter=self.name, action_id=key, error=error)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        action = context.action

        for key in (action.id, action.capability):
            if key in self._responses:
                return self._responses[key].model_copy()

        if self.side_effect is not None:
            self.side_effect(context)
        return self._ok(context, self._default_output, mock=True)

    def reset(self) -> None:
        """Forget calls and canned receipts."""
        self.call_log.clear()
        self._responses.clear()
