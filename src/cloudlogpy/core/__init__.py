"""Core log record construction and serialization pipeline."""
