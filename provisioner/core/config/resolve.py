"""
Configuration resolution — gather every decision before execution.

Pure given its inputs: the desired capability set and all secrets
are resolved here, including any interactive prompt, so the executor
itself never asks the operator anything.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Mapping

from provisioner.core.config.loader import ConfigError
from provisioner.core.engine.registry import CapabilityRegistry
from provisioner.core.models.capability import Capability
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.profile import OSProfile

logger = logging.getLogger(__name__)

SecretPrompt = Callable[[str, Capability], str]


def secret_env_var(name: str) -> str:
    """Environment variable carrying a named secret (``tailscale_auth_key`` → ``TAILSCALE_AUTH_KEY``)."""
    return name.upper()


def _check_known(registry: CapabilityRegistry, ids: Iterable[str], source: str) -> None:
    unknown = [i for i in ids if i not in registry]
    if unknown:
        raise ConfigError(f"Unknown capability in {source}: {', '.join(unknown)}")


def resolve_desired(
    registry: CapabilityRegistry,
    config: ProvisionConfig,
    profile: OSProfile,
    with_: Iterable[str] = (),
    without: Iterable[str] = (),
) -> list[str]:
    """Desired capability ids, in declaration order.

    Enable flags layer as registry default < provision.yml < CLI.
    Capabilities that do not apply to the profile are dropped
    whatever their flag says (servers drop every gui/gaming one).

    Raises:
        ConfigError: Unknown ids, or an id both added and removed.
    """
    with_ = list(with_)
    without = list(without)
    _check_known(registry, config.capabilities, "provision.yml")
    _check_known(registry, with_, "--with")
    _check_known(registry, without, "--without")

    both = sorted(set(with_) & set(without))
    if both:
        raise ConfigError(f"Capability both enabled and disabled: {', '.join(both)}")

    enabled = {cap.id: cap.default_enabled for cap in registry}
    enabled.update(config.capabilities)
    enabled.update(dict.fromkeys(with_, True))
    enabled.update(dict.fromkeys(without, False))

    desired: list[str] = []
    for cap in registry:
        if not enabled[cap.id]:
            continue
        reason = cap.applicability_reason(profile)
        if reason is not None:
            log = logger.warning if cap.id in with_ else logger.debug
            log("Dropping %s: %s", cap.id, reason)
            continue
        desired.append(cap.id)

    logger.info("Desired capabilities: %s", ", ".join(desired) or "(none)")
    return desired


def resolve_secrets(
    registry: CapabilityRegistry,
    cap_ids: Iterable[str],
    env: Mapping[str, str] | None = None,
    prompt: SecretPrompt | None = None,
) -> dict[str, str]:
    """Collect the secrets the given capabilities need.

    Only pass capabilities that will actually be acted on; a
    satisfied capability never asks for its secret.

    Raises:
        ConfigError: A required secret is neither in the environment
            nor obtainable from ``prompt``.
    """
    env = os.environ if env is None else env
    secrets: dict[str, str] = {}

    for cap_id in cap_ids:
        cap = registry.get(cap_id)
        if not cap.secret or cap.secret in secrets:
            continue

        var = secret_env_var(cap.secret)
        value = env.get(var, "").strip()
        if not value and prompt is not None:
            value = (prompt(cap.secret, cap) or "").strip()
        if not value:
            raise ConfigError(f"{cap.label} needs a secret: set {var} or run interactively")

        secrets[cap.secret] = value
        logger.debug("Resolved secret %s for %s", cap.secret, cap.id)

    return secrets
