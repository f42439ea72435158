"""
Core plumbing for the Readzy service: settings, logging, database access,
security helpers and FastAPI wiring.
"""
