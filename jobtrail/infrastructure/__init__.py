"""Infrastructure Layer: Contains concrete implementations and adapters.

Implements the interfaces defined in the domain layer (stores, clocks,
console output) and hosts the resilience components, configuration,
monitoring and outbound transports.
"""
