"""Request middleware for web frameworks.

The FastAPI and Django modules import their framework and are not loaded
by the package itself.
"""
