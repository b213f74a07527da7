"""Real-time infrastructure — Redis connection + WebSocket relay.

Learn: Redis plays two roles:
1. Subscription store (hashes of session id → last refresh)
2. Optional delivery transport (PUBLISH on per-session channels, relayed
   to browsers by the WebSocket endpoint)
"""
