"""PlantBid — bid negotiation and order fulfillment engine for a plant marketplace.

Layers: core (pure rules) → services (controllers) → api (FastAPI routers),
with infrastructure (database, payment gateway, logging, events) injected at the edges.
"""
