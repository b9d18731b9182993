#!/usr/bin/env python3
"""
TaskTrack Quickstart — two users, two private task lists.

Registers alice → creates tasks → completes one → shows that a second
user can neither list nor read alice's tasks.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000"


def register(client: httpx.Client, name: str) -> dict:
    """Register a fresh user and return auth headers for them."""
    resp = client.post("/auth/register", json={
        "username": name,
        "email": f"{name}@example.com",
        "password": "demo-password-123",
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def main():
    run_id = uuid.uuid4().hex[:6]
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  tasktrack serve")
        sys.exit(1)
    health = resp.json()
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")

    # ── Register alice ────────────────────────────────────────────
    print("\n1. Registering alice...")
    alice = register(client, f"alice-{run_id}")

    # ── Create tasks ──────────────────────────────────────────────
    print("\n2. Creating tasks...")
    ids = []
    for title in ("buy milk", "write report", "call mom"):
        resp = client.post("/tasks", json={"title": title}, headers=alice)
        assert resp.status_code == 201, f"Failed: {resp.text}"
        ids.append(resp.json()["id"])
        print(f"   #{ids[-1]} {title}")

    # ── Complete one ──────────────────────────────────────────────
    print("\n3. Completing the first task...")
    resp = client.put(f"/tasks/{ids[0]}", json={"completed": True}, headers=alice)
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   #{ids[0]} completed={resp.json()['completed']}")

    # ── List ──────────────────────────────────────────────────────
    print("\n4. Alice's list:")
    for task in client.get("/tasks", headers=alice).json():
        mark = "x" if task["completed"] else " "
        print(f"   [{mark}] #{task['id']} {task['title']}")

    # ── Isolation ─────────────────────────────────────────────────
    print("\n5. Registering bob and probing alice's tasks...")
    bob = register(client, f"bob-{run_id}")
    print(f"   bob's list: {client.get('/tasks', headers=bob).json()}")
    resp = client.get(f"/tasks/{ids[0]}", headers=bob)
    print(f"   bob GET /tasks/{ids[0]} → {resp.status_code} {resp.json()['message']}")

    print("\nDone.")


if __name__ == "__main__":
    main()
