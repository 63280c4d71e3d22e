"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each aggregate (users, catalog,
jobs, notifications, ledger). They add and flush; services decide when a unit
of work is committed.
"""
