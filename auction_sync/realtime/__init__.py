"""Realtime infrastructure (Socket.IO server, auction rooms, broadcast bus).

Connections observe one auction at a time; the bid engine and the expiry
sweep publish through the bus, which fans out to the room.
"""
