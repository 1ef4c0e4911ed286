"""Development seed data, loaded through a running API.

Run with:  python -m annual_leave.seed
Registers a few members and the default policy, then triggers the daily
update so every member has a balance. Safe to run repeatedly.
"""

from __future__ import annotations

import asyncio
import os
import sys
from typing import Any

import httpx

API_URL = os.environ.get("SEED_API_URL", "http://localhost:8000")
ADMIN_HEADERS = {"X-User-Id": "admin@example.com", "X-Role": "admin"}

MEMBERS = [
    {
        "id": "00000000-0000-0000-0000-000000000002",
        "name": "Minji Kim",
        "team_name": "Platform",
        "join_date": "2020-03-02",
    },
    {
        "id": "00000000-0000-0000-0000-000000000003",
        "name": "Junho Park",
        "team_name": "Design",
        "join_date": "2024-07-17",
    },
    {
        "id": "00000000-0000-0000-0000-000000000004",
        "name": "Seoyeon Lee",
        "team_name": "Platform",
        "join_date": "2025-11-03",
    },
]

DEFAULT_POLICY = {
    "policy_name": "Standard annual leave",
    "description": "Monthly grants in the first year, then tenure-based annual grants.",
    "first_year_monthly_grant": 1,
    "first_year_max_days": 11,
    "base_annual_days": 15,
    "increment_years": 2,
    "increment_days": 1,
    "max_annual_days": 25,
    "expire_after_months": 12,
    "is_active": True,
}


async def _call(client: httpx.AsyncClient, method: str, path: str, label: str, body: Any = None) -> Any:
    """Send one request and report it; a 409 means the data is already there."""
    resp = await client.request(method, path, json=body)
    if resp.is_success:
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} (already exists)")
    else:
        print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_members(client: httpx.AsyncClient) -> None:
    print("\n--- Members ---")
    for member in MEMBERS:
        body = {k: v for k, v in member.items() if k != "id"}
        await _call(client, "PUT", f"/members/{member['id']}", member["name"], body)


async def seed_policy(client: httpx.AsyncClient, *, has_active_policy: bool) -> None:
    print("\n--- Policy ---")
    if has_active_policy:
        print("  [SKIP] an active policy already exists")
        return
    await _call(client, "POST", "/policies", DEFAULT_POLICY["policy_name"], DEFAULT_POLICY)


async def trigger_daily_update(client: httpx.AsyncClient) -> None:
    print("\n--- Daily update ---")
    result = await _call(client, "POST", "/daily-update/trigger", "daily update")
    if result is None:
        return
    counts = " ".join(f"{key}={result[key]}" for key in ("processed", "granted", "expired", "skipped"))
    print(f"  {counts} errors={len(result['errors'])}")
    for error in result["errors"]:
        print(f"  [ERROR] {error}")


async def main() -> None:
    print(f"Seeding annual leave data at {API_URL}")

    async with httpx.AsyncClient(base_url=API_URL, headers=ADMIN_HEADERS, timeout=30.0) as client:
        try:
            health = await client.get("/health")
        except httpx.ConnectError:
            print(f"ERROR: cannot connect to {API_URL}")
            sys.exit(1)
        if health.status_code != 200 or health.json()["status"] != "ok":
            print(f"ERROR: API is not healthy: {health.text[:200]}")
            sys.exit(1)

        await seed_members(client)
        await seed_policy(client, has_active_policy=bool(health.json()["active_policy"]))
        await trigger_daily_update(client)

    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
