"""Domain-specific realtime payloads.

These modules should contain payload builders only. They must not define
Socket.IO server instances, connection handlers or delivery logic.
"""
