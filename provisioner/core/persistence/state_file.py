"""
State file — the last run's view of each capability.

``.state/current.json`` beside provision.yml. Loading never fails:
live probes are the authority, so a missing, corrupt or outdated file
simply yields a fresh state. Saving replaces the file atomically so a
crash mid-write never leaves half a document behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from provisioner.core.models.state import ProvisionState

logger = logging.getLogger(__name__)

STATE_DIR = ".state"
STATE_FILE = "current.json"


def default_state_path(root: Path) -> Path:
    return root / STATE_DIR / STATE_FILE


def load_state(path: Path) -> ProvisionState:
    """Read the state file, or start fresh when it is unusable."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No state file at %s", path)
        return ProvisionState()
    except OSError as e:
        logger.warning("Cannot read state file %s: %s — starting fresh", path, e)
        return ProvisionState()

    try:
        return ProvisionState.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Ignoring unusable state file %s: %s", path, str(e).splitlines()[0])
        return ProvisionState()


def save_state(state: ProvisionState, path: Path) -> None:
    """Write the state atomically; OSError propagates to the caller."""
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=".current_", suffix=".tmp", delete=False,
    ) as tmp:
        tmp.write(content)
    try:
        os.replace(tmp.name, path)
    except OSError:
        Path(tmp.name).unlink(missing_ok=True)
        raise
    logger.debug("State saved to %s (%d capabilities)", path, len(state.capabilities))
