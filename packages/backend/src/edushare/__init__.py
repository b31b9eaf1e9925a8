"""EduShare Connect — realtime messaging backend.

The chat and presence layer of the EduShare learning platform: users
message each other in real time, see who is online, and read back
their conversation history over HTTP.
"""

__version__ = "0.1.0"
