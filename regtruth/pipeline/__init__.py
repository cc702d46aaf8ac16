"""Pipeline stage registry and executor."""
