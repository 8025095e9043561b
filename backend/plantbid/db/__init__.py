"""Persistence plumbing — declarative Base and engine/session construction.

Models live in plantbid.models; the request-scoped session manager lives in
plantbid.infrastructure.database.
"""
