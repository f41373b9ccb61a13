"""
Capability registry — load and validate the static capability table.

Validation happens once, at load, before anything is probed or
mutated: duplicate ids, dependencies on unknown capabilities,
capabilities without probes and dependency cycles are all
configuration errors.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from pydantic import ValidationError

from provisioner.core.config.loader import ConfigError
from provisioner.core.engine.dag import CyclicDependencyError, find_cycle
from provisioner.core.models.capability import Capability
from provisioner.core.models.profile import OSProfile

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """Immutable, validated, declaration-ordered set of capabilities."""

    def __init__(self, capabilities: Iterable[Capability]):
        self._caps: dict[str, Capability] = {}
        for cap in capabilities:
            if cap.id in self._caps:
                raise ConfigError(f"Duplicate capability id: {cap.id}")
            self._caps[cap.id] = cap
        self._index = {cid: i for i, cid in enumerate(self._caps)}
        self._validate()

    @classmethod
    def from_table(cls, table: Mapping[str, Mapping]) -> CapabilityRegistry:
        """Build from ``{id: {field: value}}`` data (declaration order kept)."""
        caps = []
        for cid, spec in table.items():
            try:
                caps.append(Capability.model_validate({"id": cid, **spec}))
            except ValidationError as e:
                raise ConfigError(f"Invalid capability '{cid}': {e}") from e
        return cls(caps)

    def _validate(self) -> None:
        for cap in self._caps.values():
            for dep in cap.depends_on:
                if dep not in self._caps:
                    raise ConfigError(f"Capability '{cap.id}' depends on unknown capability '{dep}'")
            if not cap.probes:
                raise ConfigError(f"Capability '{cap.id}' declares no probe")

        cycle = find_cycle(self.graph)
        if cycle:
            raise CyclicDependencyError(cycle)

        logger.debug("Capability registry loaded: %d capabilities", len(self._caps))

    # ── Lookup ─────────────────────────────────────────────────

    @property
    def graph(self) -> dict[str, list[str]]:
        """id -> dependency ids."""
        return {cid: list(cap.depends_on) for cid, cap in self._caps.items()}

    @property
    def ids(self) -> list[str]:
        return list(self._caps)

    def get(self, cap_id: str) -> Capability:
        """Look up a capability.

        Raises:
            ConfigError: If the id is unknown.
        """
        try:
            return self._caps[cap_id]
        except KeyError:
            raise ConfigError(f"Unknown capability: {cap_id}") from None

    def index_of(self, cap_id: str) -> int:
        return self._index[cap_id]

    def __contains__(self, cap_id: object) -> bool:
        return cap_id in self._caps

    def __iter__(self) -> Iterator[Capability]:
        return iter(self._caps.values())

    def __len__(self) -> int:
        return len(self._caps)

    def applicable(self, profile: OSProfile) -> list[Capability]:
        return [c for c in self._caps.values() if c.is_applicable(profile)]

    def closure(self, cap_ids: Iterable[str]) -> list[str]:
        """``cap_ids`` plus all transitive dependencies, declaration-ordered."""
        seen: set[str] = set()
        stack = list(cap_ids)
        while stack:
            cid = stack.pop()
            if cid in seen:
                continue
            seen.add(cid)
            stack.extend(self.get(cid).depends_on)
        return sorted(seen, key=self.index_of)


def load_registry() -> CapabilityRegistry:
    """Load the built-in capability table."""
    from provisioner.core.data.capabilities import CAPABILITIES

    return CapabilityRegistry.from_table(CAPABILITIES)
