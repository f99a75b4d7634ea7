"""
Team access feature module.

Module catalog, roles with per-module permission levels, the privilege
guard that keeps role creation and assignment from escalating, and the
one-line permission summaries shown next to each role.
"""
