"""Syndic bank reconciliation service."""
