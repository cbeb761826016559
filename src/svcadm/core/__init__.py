"""Lifecycle core: configuration, scheduling and orchestration."""
