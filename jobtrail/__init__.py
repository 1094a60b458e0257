"""jobtrail: resilience layer of the job-application tracker.

Login-attempt throttling with progressive lockout, and retry-with-backoff
for calls to external services.
"""

__version__ = "1.0.0"
