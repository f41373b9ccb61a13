"""Workstation provisioner — idempotent first-time setup for Linux hosts."""

__version__ = "0.1.0"
