"""Domain Layer: value objects, ports and events of the resilience layer."""
