"""Extraction: candidate assertions from evidence text, persisted as unverified source pointers."""
