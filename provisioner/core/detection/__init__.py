"""Read-only system detection: OS profile and check primitives."""
