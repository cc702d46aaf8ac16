"""Evidence Store: fetched source snapshots and their derived text artifacts."""
