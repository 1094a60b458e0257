"""Domain Interfaces (Ports):

Defines the contracts (Abstract Base Classes) that infrastructure components
must implement. The throttle and the CLI depend on these interfaces, not on
concrete implementations.
"""
