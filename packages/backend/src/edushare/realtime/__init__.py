"""Real-time chat — presence, conversation channels, event engine.

Learn: Three in-process pieces, all owned by one MessagingEngine:
1. PresenceRegistry — which user is online on which connection
2. ConversationRouter — channel membership and fan-out
3. MessagingEngine — event dispatch table tying them to the message store

Chat events are optionally mirrored to Redis pub/sub for other
processes; live delivery to sockets never depends on Redis.
"""
