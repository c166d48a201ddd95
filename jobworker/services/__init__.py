"""Reconciliation loops, scanners and provider adapters used by job handlers."""
