"""Regulatory rules: composition, conflicts, review, release and resolution."""
