"""Rate limit storage adapters.

The shared file store is the production backend; the in-memory store serves
single-process deployments and tests.
"""
