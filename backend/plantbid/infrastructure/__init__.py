"""Infrastructure Layer — external service clients and cross-cutting concerns.

Invariants:
    - All external calls wrapped with timeout/retry/error mapping
    - Logging configured once, at startup

Design Decisions:
    - Resilient wrappers over raw clients: controllers see classified outcomes only
"""
