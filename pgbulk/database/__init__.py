"""
PostgreSQL access: pool, transaction session, catalog inspection and schema guard.
"""
