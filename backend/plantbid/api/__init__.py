"""HTTP surface — thin FastAPI routers over the bid, order and transcript services."""
