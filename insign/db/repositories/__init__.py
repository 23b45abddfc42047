"""
Per-domain repository modules for database access.

Routers and services call these functions instead of building queries
inline; every org-scoped lookup takes the organization id explicitly.
"""
