"""Review pipeline stages: ranking, scope, loading, model fan-out and synthesis."""
