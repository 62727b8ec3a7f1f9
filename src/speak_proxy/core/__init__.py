"""
Core Infrastructure for speak-proxy.

    - config.py: Settings loading, defaults and validation
    - logging/: Operator log (numeric levels) and the stdout access log
    - metrics.py: Prometheus collectors
"""
