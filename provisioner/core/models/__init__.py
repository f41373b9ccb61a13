"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from provisioner.core.models import Capability, OSProfile, ExecutionRecord
"""

from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.capability import (
    Applicability,
    Capability,
    Check,
    Step,
)
from provisioner.core.models.config import ProvisionConfig, Timeouts
from provisioner.core.models.probe import CheckResult, ProbeResult
from provisioner.core.models.profile import OSProfile
from provisioner.core.models.record import ExecutionRecord, RunRecord
from provisioner.core.models.state import CapabilityState, ProvisionState

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # capability.py
    "Applicability",
    "Capability",
    "Check",
    "Step",
    # config.py
    "ProvisionConfig",
    "Timeouts",
    # probe.py
    "CheckResult",
    "ProbeResult",
    # profile.py
    "OSProfile",
    # record.py
    "ExecutionRecord",
    "RunRecord",
    # state.py
    "CapabilityState",
    "ProvisionState",
]
