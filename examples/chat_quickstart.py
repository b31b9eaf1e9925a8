#!/usr/bin/env python3
"""
EduShare Connect Quickstart — two users chat over the WebSocket.

Registers a student and a teacher, connects both sockets, exchanges a
message, shows typing, deletes the message, then reads history over REST.
Run with: python examples/chat_quickstart.py

Requires: pip install "edushare-connect[examples]"
Backend must be running: http://localhost:8000
"""

import asyncio
import json

import websockets

from _common import WS_BASE, api_client, check_backend, register_and_login


async def send(ws, event: str, data) -> None:
    await ws.send(json.dumps({"event": event, "data": data}))


async def expect(ws, event: str) -> dict:
    """Read frames until one named `event` arrives; print the rest."""
    while True:
        frame = json.loads(await asyncio.wait_for(ws.recv(), timeout=5))
        if frame["event"] == event:
            return frame["data"]
        print(f"   (skipped {frame['event']})")


async def run(student: dict, teacher: dict) -> str:
    conversation_id = "_".join(sorted([student["user_id"], teacher["user_id"]]))

    async with websockets.connect(f"{WS_BASE}?token={student['access_token']}") as s_ws, \
            websockets.connect(f"{WS_BASE}?token={teacher['access_token']}") as t_ws:

        # ── Identify ──────────────────────────────────────────────
        print("\n1. Joining...")
        await send(s_ws, "join-user", student["user_id"])
        online = await expect(s_ws, "online-users")
        await send(t_ws, "join-user", teacher["user_id"])
        await expect(t_ws, "online-users")
        print(f"   Online after student joined: {len(online)} user(s)")

        await send(s_ws, "join-conversation", conversation_id)
        await send(t_ws, "join-conversation", conversation_id)
        await send(t_ws, "ping", None)
        await expect(t_ws, "pong")
        print(f"   Conversation: {conversation_id}")

        # ── Typing ────────────────────────────────────────────────
        print("\n2. Student starts typing...")
        await send(s_ws, "typing-start", {
            "conversationId": conversation_id,
            "userId": student["user_id"],
            "username": student["username"],
        })
        typing = await expect(t_ws, "user-typing")
        print(f"   Teacher sees: {typing['username']} is typing")

        # ── Send ──────────────────────────────────────────────────
        print("\n3. Sending a message...")
        await send(s_ws, "send-message", {
            "senderId": student["user_id"],
            "receiverId": teacher["user_id"],
            "content": "Could you explain question 4 again?",
            "conversationId": conversation_id,
        })
        message = await expect(t_ws, "new-message")
        notification = await expect(t_ws, "message-notification")
        print(f"   Teacher got: {message['sender']['username']}: {message['content']}")
        print(f"   Notification from: {notification['sender']}")

        # ── Delete ────────────────────────────────────────────────
        print("\n4. Student deletes the message...")
        await expect(s_ws, "new-message")
        await send(s_ws, "delete-message", {
            "messageId": message["id"],
            "conversationId": conversation_id,
        })
        deleted = await expect(t_ws, "message-deleted")
        print(f"   Teacher saw delete of {deleted['messageId'][:8]}...")

    return conversation_id


def main():
    check_backend()
    student = register_and_login("student", role="student")
    teacher = register_and_login("teacher", role="teacher")
    print(f"  Student: {student['username']} ({student['user_id'][:8]}...)")
    print(f"  Teacher: {teacher['username']} ({teacher['user_id'][:8]}...)")

    asyncio.run(run(student, teacher))

    # ── History over REST ─────────────────────────────────────────
    print("\n5. Reading history...")
    with api_client(student["access_token"]) as client:
        resp = client.get(f"/chat/history/{teacher['user_id']}")
        assert resp.status_code == 200, f"Failed: {resp.text}"
        history = resp.json()
    print(f"   {len(history['messages'])} message(s) left in {history['conversationId']}")

    print("\n✓ Quickstart complete!")


if __name__ == "__main__":
    main()
