"""Core Application Layer: Orchestrates use cases on top of the resilience layer.

Contains the login guard used by the authentication route and the email
delivery service used by notification senders.
"""
