"""Operational checks: rule-table parity and health gates."""
