#!/usr/bin/env python3
"""
Seed script: creates a small social graph for trying out friend suggestions.

Creates:
  • 10 registered users (password: Passw0rd!)
  • Friendships via send-request / accept-request
  • A few pending requests left unanswered
  • 3 posts per user, plus likes and comments across them

Run against a live API started with RATE_LIMIT_ENABLED=false (the script
sends more requests than one client's default budget):
  python scripts/seed_data.py --api-url http://localhost:8000
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional

PASSWORD = "Passw0rd!"

BASE_USERS = [
    "alice_ai",
    "bob_builder",
    "carol_codes",
    "dave_designs",
    "eve_engineer",
    "frank_feeds",
    "grace_graphs",
    "henry_hpc",
    "iris_infra",
    "jack_ml",
]

SAMPLE_POSTS = [
    "Just shipped a new feature to production. Zero downtime deploys are beautiful.",
    "Weekend hike with the climbing club, anyone up for the next one?",
    "Reading group this week: chapter 4 of Designing Data-Intensive Applications.",
    "Finally got the sourdough starter to behave.",
    "Who else is going to the meetup on Thursday?",
    "Hot take: tabs vs spaces matters less than a consistent formatter.",
    "New blog post on graph traversal queries is up.",
    "Coffee recommendations near the office? The machine is broken again.",
    "Mentoring two interns this summer, excited to see what they build.",
    "Learned more from one production incident than from a month of reading.",
]

SAMPLE_COMMENTS = ["Nice!", "Totally agree", "Count me in", "Interesting take", "Congrats!"]


@dataclass
class ApiClient:
    base_url: str
    token: Optional[str] = None

    def as_user(self, token: str) -> "ApiClient":
        return ApiClient(self.base_url, token)

    def request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            if e.code == 429:
                raise RuntimeError(
                    "Rate limited by the API; restart it with RATE_LIMIT_ENABLED=false and re-run"
                ) from e
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: Optional[dict] = None) -> dict:
        return self.request("POST", path, data)

    def get(self, path: str) -> dict:
        return self.request("GET", path)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def register_or_login(client: ApiClient, username: str) -> dict:
    email = f"{username}@example.com"
    result = client.post(
        "/auth/register", {"username": username, "email": email, "password": PASSWORD}
    )
    if not result:
        result = client.post("/auth/login", {"email": email, "password": PASSWORD})
    return result


def main(api_url: str, seed: int) -> None:
    random.seed(seed)
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Users ────────────────────────────────────────────────────────────
    print("Registering users...")
    sessions: dict[str, ApiClient] = {}
    user_ids: dict[str, str] = {}
    for username in BASE_USERS:
        result = register_or_login(client, username)
        if result.get("token"):
            sessions[username] = client.as_user(result["token"])
            user_ids[username] = result["user"]["id"]
            print(f"  ✓ {username} ({user_ids[username]})")
        else:
            print(f"  ✗ Failed to register {username}")

    names = list(sessions)
    if len(names) < 2:
        print("Not enough users — aborting")
        return

    # ── Friendships ──────────────────────────────────────────────────────
    print("\nBuilding the friend graph...")
    friendships = pending = 0
    for i, sender in enumerate(names):
        for recipient in random.sample(names[i + 1:], k=min(2, len(names) - i - 1)):
            sent = sessions[sender].post("/users/send-request", {"userId": user_ids[recipient]})
            if not sent:
                continue
            if random.random() < 0.75:
                if sessions[recipient].post("/users/accept-request", {"userId": user_ids[sender]}):
                    friendships += 1
            else:
                pending += 1
    print(f"  ✓ {friendships} friendships, {pending} pending requests")

    # ── Posts ────────────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    for username in names:
        for content in random.sample(SAMPLE_POSTS, k=3):
            result = sessions[username].post("/posts/", {"content": content})
            if result.get("id"):
                post_ids.append(result["id"])
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Likes & comments ─────────────────────────────────────────────────
    print("\nAdding likes and comments...")
    likes = comments = 0
    for post_id in post_ids:
        for username in random.sample(names, k=random.randint(0, 4)):
            if sessions[username].post(f"/posts/like/{post_id}"):
                likes += 1
        for username in random.sample(names, k=random.randint(0, 2)):
            created = sessions[username].post(
                f"/comments/{post_id}", {"content": random.choice(SAMPLE_COMMENTS)}
            )
            if created:
                comments += 1
    print(f"  ✓ {likes} likes, {comments} comments")

    # ── Summary ──────────────────────────────────────────────────────────
    first = names[0]
    print("\n" + "=" * 60)
    print("Seed complete! Try the suggestions for one of the users:\n")
    print(f"  TOKEN=$(curl -s -X POST '{api_url}/auth/login' \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{first}@example.com\", \"password\": \"{PASSWORD}\"}}' \\")
    print("    | python3 -c 'import json,sys; print(json.load(sys.stdin)[\"token\"])')")
    print(f"  curl -s '{api_url}/users/suggestions?limit=5' \\")
    print("    -H \"Authorization: Bearer $TOKEN\" | python3 -m json.tool\n")
    print(f"# Prometheus metrics: {api_url}/metrics/")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Social Graph API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()
    main(args.api_url, args.seed)
