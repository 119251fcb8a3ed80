"""
Core package — cross-cutting concerns.

Modules:
    config          — environment settings & well-known names
    logging_config  — structured JSON / pretty logging with run context
    errors          — migration exception hierarchy & HTTP handlers
"""
