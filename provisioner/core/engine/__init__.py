"""Provisioning engine — registry, probe, plan, execute, report."""
