"""
VoyageWatch — Shared Building Blocks
Collaborators used by both services:
  - geo            : great-circle distance, bearing, leg midpoint
  - weather        : wind chill, Beaufort sea state, cyclone detection
  - weather_client : Open-Meteo realtime / forecast / marine client
  - cache          : TTL cache (in-process or Redis)
  - store          : alert persistence
  - push           : per-recipient WebSocket push channel
  - repository     : voyage / vessel lookups
"""
