"""Authentication — the session principal for HTTP and WebSocket traffic.

Learn: Users log in with username/email + password and receive JWT
access/refresh tokens. Every protected route and the chat WebSocket
resolve the token to a CurrentIdentity carrying the user id.
"""
