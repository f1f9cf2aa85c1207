#!/usr/bin/env python3
"""
Seed script — creates a small dataset for trying out the feed.

Creates:
  • 5 users (password "secret123")
  • 3 posts per user, each with a generated PNG image
  • a status line per user

Run after the API is up:
  python scripts/seed_data.py --api-url http://localhost:8080

Tokens are printed so you can use them in curl commands.
"""
import argparse
import random
import struct
import time
import zlib

import httpx


BASE_USERS = [
    ("alice@example.com", "Alice Chen"),
    ("bob@example.com", "Bob Martinez"),
    ("carol@example.com", "Carol Singh"),
    ("dave@example.com", "Dave Kim"),
    ("eve@example.com", "Eve Johnson"),
]

PASSWORD = "secret123"

SAMPLE_POSTS = [
    ("Morning run", "Five kilometres before breakfast, legs still complaining."),
    ("New desk setup", "Finally moved the monitor arm, my neck says thank you."),
    ("Sourdough attempt #4", "Crumb is getting there. Still too dense in the middle."),
    ("Weekend hike", "Foggy at the top, but the descent through the forest was great."),
    ("Reading list", "Halfway through a book on distributed systems. Slow going."),
    ("Garden update", "Tomatoes are finally turning red. Basil is out of control."),
    ("Coffee experiment", "Tried a finer grind on the pour-over. Much more balanced."),
    ("Street photo", "Caught the light just right on the way home today."),
]

STATUSES = [
    "Busy shipping things",
    "On holiday until Monday",
    "Learning to bake",
    "Looking for hiking buddies",
    "Reading, do not disturb",
]


def tiny_png(rgb: tuple[int, int, int]) -> bytes:
    """A valid 1×1 PNG in the given colour."""
    def chunk(tag: bytes, data: bytes) -> bytes:
        return (
            struct.pack(">I", len(data))
            + tag
            + data
            + struct.pack(">I", zlib.crc32(tag + data) & 0xFFFFFFFF)
        )

    header = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    pixels = zlib.compress(b"\x00" + bytes(rgb))
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IDAT", pixels) + chunk(b"IEND", b"")


def wait_for_api(client: httpx.Client, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").json().get("status") == "ok":
                print("  API is ready!\n")
                return
        except httpx.HTTPError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def login(client: httpx.Client, email: str) -> str:
    resp = client.put(
        "/auth/signup", json={"email": email, "name": email.split("@")[0], "password": PASSWORD}
    )
    if resp.status_code not in (201, 409):
        print(f"  HTTP {resp.status_code} on signup {email}: {resp.text}")
    resp = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    resp.raise_for_status()
    return resp.json()["token"]


def main(api_url: str) -> None:
    client = httpx.Client(base_url=api_url, timeout=10)
    wait_for_api(client)

    # ── Create users ─────────────────────────────────────────────────────
    print("Creating users...")
    tokens: dict[str, str] = {}
    for email, display_name in BASE_USERS:
        try:
            tokens[email] = login(client, email)
            print(f"  ✓ {display_name} <{email}>")
        except httpx.HTTPStatusError as exc:
            print(f"  ✗ Failed to log in {email}: {exc.response.text}")

    if not tokens:
        print("No users available — aborting")
        return

    # ── Create posts ──────────────────────────────────────────────────────
    print("\nCreating posts...")
    created = 0
    for email, token in tokens.items():
        headers = {"Authorization": f"Bearer {token}"}
        for title, content in random.sample(SAMPLE_POSTS, k=3):
            colour = tuple(random.randint(0, 255) for _ in range(3))
            upload = client.put(
                "/post-image",
                headers=headers,
                files={"image": ("seed.png", tiny_png(colour), "image/png")},
            )
            if upload.status_code != 201:
                print(f"  HTTP {upload.status_code} on image upload: {upload.text}")
                continue
            resp = client.post(
                "/posts",
                headers=headers,
                json={
                    "title": title,
                    "content": content,
                    "image_url": upload.json()["file_path"],
                },
            )
            if resp.status_code == 201:
                created += 1
            else:
                print(f"  HTTP {resp.status_code} on create post: {resp.text}")
    print(f"  ✓ {created} posts created")

    # ── Set statuses ──────────────────────────────────────────────────────
    print("\nSetting statuses...")
    for token, status in zip(tokens.values(), STATUSES):
        client.patch(
            "/users/me/status",
            headers={"Authorization": f"Bearer {token}"},
            json={"status": status},
        )
    print("  ✓ done")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    token = next(iter(tokens.values()))
    print("# First page of the feed:")
    print(f"  curl -s '{api_url}/posts?page=1' | python3 -m json.tool\n")
    print("# Your own profile:")
    print(f"  curl -s -H 'Authorization: Bearer {token}' '{api_url}/users/me'\n")
    print("# Watch live events (requires websocat):")
    print(f"  websocat {api_url.replace('http', 'ws', 1)}/ws/posts")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Live Feed API")
    parser.add_argument("--api-url", default="http://localhost:8080", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
