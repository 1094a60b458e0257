"""Domain Event definitions.

Represents significant occurrences in the resilience layer (lockouts,
retries) that audit sinks and loggers may react to.
"""
