"""
Sync services: schedule expansion, playlist push, heartbeats and impressions.
"""
