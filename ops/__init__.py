"""Orchestration commands for the storage-lab stack: deploy, status, scan, cleanup."""

__version__ = "0.1.0"
