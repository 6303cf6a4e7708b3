"""
AdCast server: HTTP API, sync runtime and services.
"""
