"""HookRelay - configured outbound webhook execution."""

__version__ = "0.1.0"
