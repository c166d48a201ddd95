"""Core runtime plumbing: logging, error reporting, lifespan."""
