"""Cost-optimal allocation of accelerators to LLM inference servers, with a REST optimizer server."""

__version__ = "0.1.0"