#!/usr/bin/env python3
"""
HyperRecord Quickstart: two viewers, one post, one comment.

Viewer A subscribes to a post, viewer B touches it, then a comment is
added to the post's `comments` relation and finally the post is destroyed.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
Set HYPERRECORD_RESOURCE_TRANSPORT=redis to watch deliveries on /ws/{session}.
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"


def client_for(session_id: str) -> httpx.Client:
    return httpx.Client(base_url=BASE, timeout=10, headers={"X-Session-ID": session_id})


def show(label: str, body: dict) -> None:
    if not body["notified"]:
        print(f"   {label}: skipped")
        return
    print(
        f"   {label}: {body['key']} -> {body['live_sessions']} live, "
        f"{body['scrubbed_sessions']} scrubbed, {body['batches']} batch(es)"
    )


def main():
    run_id = uuid.uuid4().hex[:6]
    viewer_a = client_for(f"viewer-a-{run_id}")
    viewer_b = client_for(f"viewer-b-{run_id}")
    post = {"record_type": "Post", "id": f"demo-{run_id}"}

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = viewer_a.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        sys.exit(1)
    health = resp.json()
    print(f"  Status:    {health['status']}")
    print(f"  Redis:     {health['redis']}")
    print(f"  Transport: {health['transport']}")

    # ── Viewer A opens the post ───────────────────────────────────
    print("\n1. Viewer A renders the post...")
    resp = viewer_a.post("/pubsub/record", json={"record": post})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    show("record", resp.json())

    # ── Viewer B edits it; A is notified ──────────────────────────
    print("\n2. Viewer B updates the post...")
    resp = viewer_b.post("/pubsub/record", json={"record": post})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    show("record", resp.json())

    # ── A comment lands on the post's relation ────────────────────
    print("\n3. Viewer B comments on the post...")
    comment = {"record_type": "Comment", "id": f"c-{run_id}"}
    resp = viewer_b.post("/pubsub/relation", json={
        "base": post,
        "relation": "comments",
        "related": [comment],
        "cause": comment,
    })
    assert resp.status_code == 200, f"Failed: {resp.text}"
    show("relation", resp.json())

    # ── Who is watching? ──────────────────────────────────────────
    print("\n4. Subscribers of the post:")
    resp = viewer_a.get("/subscribers", params={"record_type": "Post", "id": post["id"]})
    for sub in resp.json()["subscribers"]:
        print(f"   {sub['session_id']}  stale={sub['stale']}")

    # ── Destroy it; the record key goes away ──────────────────────
    print("\n5. Viewer A destroys the post...")
    resp = viewer_a.post("/pubsub/record", json={"record": {**post, "destroyed": True}})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    body = resp.json()
    show("record", body)
    print(f"   Key dropped: {body['key_dropped']}")

    print("\n✓ Done.")


if __name__ == "__main__":
    main()
