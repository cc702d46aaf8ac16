"""Concept registry: regulatory concepts, risk classification and content mappings."""
