"""Content sync: durable outbox of rule changes and the worker that patches content files."""
