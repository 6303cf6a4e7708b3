"""
AdCast API Routers.

Modules:
    health      – Health / readiness checks
    schedule    – Schedule expansion and deletion
    push        – Playlist preview, re-push and device commands
    impressions – Daily impression aggregates
"""
