"""Seed script for development data.

Run with:  python -m app.seed  (against a running API)

The demo roster below is loaded into the in-memory employee directory by the
API itself at startup when ``environment`` is ``development``; this script
then configures leave types, balances and a few requests over HTTP.
"""

from __future__ import annotations

import asyncio
import sys
import uuid
from datetime import date, timedelta

import httpx

from app.services.employee import EmployeeInfo, InMemoryEmployeeService

BASE_URL = "http://localhost:8000"

# Well-known employee UUIDs
HR_ID = "00000000-0000-0000-0000-000000000001"
MANAGER_ID = "00000000-0000-0000-0000-000000000002"
ALICE_ID = "00000000-0000-0000-0000-000000000003"
BOB_ID = "00000000-0000-0000-0000-000000000004"

DEPARTMENT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000d1")

DEMO_EMPLOYEES = [
    EmployeeInfo(
        id=uuid.UUID(HR_ID),
        first_name="Helen",
        last_name="Reyes",
        email="helen.reyes@example.com",
        role="hr",
        department_id=DEPARTMENT_ID,
    ),
    EmployeeInfo(
        id=uuid.UUID(MANAGER_ID),
        first_name="Marcus",
        last_name="Lee",
        email="marcus.lee@example.com",
        role="manager",
        manager_id=uuid.UUID(HR_ID),
        department_id=DEPARTMENT_ID,
    ),
    EmployeeInfo(
        id=uuid.UUID(ALICE_ID),
        first_name="Alice",
        last_name="Johnson",
        email="alice.johnson@example.com",
        manager_id=uuid.UUID(MANAGER_ID),
        department_id=DEPARTMENT_ID,
        device_tokens=["demo-device-alice"],
    ),
    EmployeeInfo(
        id=uuid.UUID(BOB_ID),
        first_name="Bob",
        last_name="Smith",
        email="bob.smith@example.com",
        manager_id=uuid.UUID(MANAGER_ID),
        department_id=DEPARTMENT_ID,
    ),
]

LEAVE_TYPES = [
    {"leave_type": "ANNUAL", "display_name": "Annual", "default_balance": 21},
    {
        "leave_type": "SICK",
        "display_name": "Sick",
        "default_balance": 7,
        "auto_approve_enabled": True,
        "auto_approve_threshold_days": 3,
    },
    {"leave_type": "EMERGENCY", "display_name": "Emergency", "default_balance": 7, "bypass_conflict_check": True},
]


def seed_directory(service: InMemoryEmployeeService) -> None:
    """Load the demo roster into an in-memory directory."""
    for employee in DEMO_EMPLOYEES:
        service.seed(employee)


def _headers(user_id: str, role: str = "employee") -> dict[str, str]:
    return {"Content-Type": "application/json", "X-User-Id": user_id, "X-Role": role}


HR_HEADERS = _headers(HR_ID, "hr")


async def _safe_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    json_data: dict | None,
    headers: dict[str, str],
    label: str,
) -> dict | None:
    """Send a request and report the outcome. Returns the JSON body on success."""
    resp = await client.request(method, url, json=json_data, headers=headers)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} (conflict: {resp.json().get('detail')})")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text}")
    return None


async def seed_leave_types(client: httpx.AsyncClient) -> None:
    print("\n--- Leave types ---")
    await _safe_request(
        client, "PUT", f"{BASE_URL}/leave-types", {"items": LEAVE_TYPES}, HR_HEADERS, "Leave type policies"
    )


async def seed_balances(client: httpx.AsyncClient) -> None:
    print("\n--- Balances ---")
    employee_ids = [ALICE_ID, BOB_ID, MANAGER_ID]
    await _safe_request(
        client,
        "POST",
        f"{BASE_URL}/balances/initialize",
        {"employee_ids": employee_ids},
        HR_HEADERS,
        f"Initialize balances for {len(employee_ids)} employees",
    )


async def seed_requests(client: httpx.AsyncClient) -> None:
    print("\n--- Requests ---")
    start = date.today() + timedelta(days=14)

    # Alice: 5 days annual, approved by manager, waiting on HR
    result = await _safe_request(
        client,
        "POST",
        f"{BASE_URL}/requests",
        {
            "leave_type": "ANNUAL",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=4)).isoformat(),
            "note": "Family trip",
        },
        _headers(ALICE_ID),
        "Request: Alice 5-day annual leave",
    )
    if result:
        await _safe_request(
            client,
            "POST",
            f"{BASE_URL}/requests/{result['id']}/manager-decision",
            {"approve": True, "comment": "Enjoy"},
            _headers(MANAGER_ID, "manager"),
            "Manager approved Alice's request (PENDING_HR)",
        )

    # Bob: 2 days sick, auto-approved under the SICK policy
    await _safe_request(
        client,
        "POST",
        f"{BASE_URL}/requests",
        {
            "leave_type": "SICK",
            "start_date": (start + timedelta(days=1)).isoformat(),
            "end_date": (start + timedelta(days=2)).isoformat(),
            "note": "Doctor appointment",
        },
        _headers(BOB_ID),
        "Request: Bob 2-day sick leave (auto-approved)",
    )


async def main() -> None:
    print("=" * 60)
    print("  Leave Workflow: Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            sys.exit(1)

        await seed_leave_types(client)
        await seed_balances(client)
        await seed_requests(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
