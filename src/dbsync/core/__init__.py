"""Core infrastructure: configuration, logging, databases, registry, plans, alerts."""
