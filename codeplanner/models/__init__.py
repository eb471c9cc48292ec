"""LLM provider clients and model catalog."""
