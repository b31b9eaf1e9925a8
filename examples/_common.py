"""
Shared helpers for EduShare Connect examples.

Handles the health check and register + login so each example can
focus on the chat flow itself.
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"
WS_BASE = "ws://localhost:8000/ws/chat"


def check_backend() -> None:
    """Verify the backend is reachable and healthy."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  edushare serve --reload")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Backend health:")
    print(f"  Database: {health['database']}")
    print(f"  Redis:    {health['redis']}")

    if health["database"] != "ok":
        print("\nERROR: Database is not connected. Start it with: docker compose up -d")
        sys.exit(1)


def register_and_login(name: str, role: str = "student") -> dict:
    """Register a fresh user and log in.

    Uses a unique username per run so examples are idempotent.
    Returns {"user_id", "username", "access_token"}.
    """
    run_id = uuid.uuid4().hex[:6]
    username = f"{name}-{run_id}"
    password = "demo-password-123"

    resp = httpx.post(
        f"{BASE}/auth/register",
        json={
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
            "role": role,
            "profile": {"bio": f"Demo {role} {name}"},
        },
        timeout=10,
    )
    if resp.status_code != 201:
        print(f"ERROR: Registration failed: {resp.status_code} {resp.text}")
        sys.exit(1)

    resp = httpx.post(
        f"{BASE}/auth/login",
        json={"login": username, "password": password},
        timeout=10,
    )
    if resp.status_code != 200:
        print(f"ERROR: Login failed: {resp.status_code} {resp.text}")
        sys.exit(1)

    tokens = resp.json()
    return {
        "user_id": tokens["user_id"],
        "username": username,
        "access_token": tokens["access_token"],
    }


def api_client(token: str) -> httpx.Client:
    """httpx Client with auth headers for the chat REST endpoints."""
    return httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {token}"},
    )
