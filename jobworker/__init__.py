"""jobworker - durable background job engine.

Postgres-backed work queue with retry, backoff and dead-lettering, plus
payment webhook reconciliation and an ops inbox anomaly scanner.
"""

__version__ = "0.1.0"
