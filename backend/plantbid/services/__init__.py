"""Services Layer — state controllers, transcript store, and the view reconciler.

Invariants:
    - Services own transactions: status writes commit before transcript appends
    - Every status write is compare-and-set on (status, version)

Design Decisions:
    - One controller per aggregate (bid, order) plus a thin reconciler driver
"""
