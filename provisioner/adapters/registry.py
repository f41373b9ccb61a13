"""
Adapter registry — routes each action to the adapter that runs it.

The executor and the launcher helpers never call adapters directly.
The registry also knows who the provisioner is (root or not) and who
it provisions for, so every adapter sees the same execution context.
"""

from __future__ import annotations

import logging
import shutil
import time

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Name → adapter dispatch with an optional mock override.

    In mock mode every action goes to the mock adapter (or, with no
    mock adapter set, succeeds without running anything).
    """

    def __init__(self, mock_mode: bool = False, user: str = "", is_root: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None
        self._user = user
        self._is_root = is_root

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", adapter.name)
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters)

    def _resolve(self, action: Action) -> Adapter | None:
        if self._mock_mode:
            return self._mock_adapter
        return self._adapters.get(action.adapter)

    def execute_action(self, action: Action, dry_run: bool = False) -> Receipt:
        """Validate and run one action; never raises.

        Dry runs stop after validation with a skip receipt. Secret
        values are scrubbed from whatever comes back.
        """
        start = time.monotonic()
        adapter = self._resolve(action)

        if adapter is None and self._mock_mode:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.adapter}:{action.id} executed",
                metadata={"mock": True, "dry_run": dry_run},
            )
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter, action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        context = ExecutionContext(action=action, user=self._user, is_root=self._is_root, dry_run=dry_run)
        receipt = self._run(adapter, context, dry_run)
        receipt.duration_ms = int((time.monotonic() - start) * 1000)
        return receipt.scrub(action)

    def _run(self, adapter: Adapter, context: ExecutionContext, dry_run: bool) -> Receipt:
        action = context.action
        if not adapter.is_available():
            missing = ", ".join(t for t in adapter.required_tools if not shutil.which(t))
            return Receipt.failure(
                adapter=action.adapter, action_id=action.id,
                error=f"Adapter '{adapter.name}' unavailable: missing {missing or 'tools'}",
            )
        try:
            is_valid, error_msg = adapter.validate(context)
        except Exception as e:
            return Receipt.failure(adapter=action.adapter, action_id=action.id, error=f"Validation error: {e}")
        if not is_valid:
            return Receipt.failure(adapter=action.adapter, action_id=action.id, error=f"Validation failed: {error_msg}")

        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] Would execute {action.adapter}:{action.name or action.id}",
                metadata={"dry_run": True},
            )

        try:
            return adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised on %s: %s", adapter.name, action.id, action.redact(str(e)))
            return Receipt.failure(adapter=action.adapter, action_id=action.id, error=f"Unexpected error: {e}")
