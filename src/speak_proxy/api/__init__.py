"""speak-proxy HTTP API: /speak, /health, /metrics."""
