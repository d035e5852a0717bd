"""ASH (AI Scheduling Helper): conversational scheduling backend."""

__version__ = "0.1.0"
