"""Multi-provider LLM code review pipeline."""

__version__ = "0.1.0"
