"""Backup commands."""
