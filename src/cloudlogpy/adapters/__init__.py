"""Adapters connecting the core to web frameworks and the runtime."""
