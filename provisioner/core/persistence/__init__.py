"""Persistence — audit log and last-run state."""
