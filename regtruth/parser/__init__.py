"""Structural parsing of legal documents into provision node trees."""
