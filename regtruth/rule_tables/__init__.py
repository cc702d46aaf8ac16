"""Versioned rule tables (rates, brackets, limits) used by downstream calculators."""
