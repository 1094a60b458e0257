"""Resilience Implementations.

Contains the login-attempt throttle, its attempt store and periodic sweep,
a per-route request rate limiter, and the retry-with-backoff executor with
its named policies.
Bounded Context: Resilience
"""
