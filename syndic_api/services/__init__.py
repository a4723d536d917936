"""Reconciliation business services."""
