"""
Order Burst Simulation Script

Fires concurrent order placements at a running server and checks that
the returned order codes are distinct and contiguous.
Run from project root: python scripts/simulate.py --owner-id <student-id> --merchant-id <admin-id>

Version: 1.0.0
"""

import asyncio
import sys
import os
import random
import re
import time
import argparse
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Configuration
API_BASE_URL = "http://localhost:3000"
TOTAL_ORDERS = 50

MENU_ITEMS = [
    {"item_id": "masala-dosa", "unit_price": 50.0},
    {"item_id": "veg-biryani", "unit_price": 90.0},
    {"item_id": "samosa", "unit_price": 15.0},
    {"item_id": "cold-coffee", "unit_price": 40.0},
    {"item_id": "paneer-roll", "unit_price": 60.0},
]

CODE_PATTERN = re.compile(r"^CC-#(\d+)$")


def generate_random_items() -> list[dict]:
    """Generate random order items."""
    items = []
    for _ in range(random.randint(1, 3)):
        item = random.choice(MENU_ITEMS).copy()
        item["quantity"] = random.randint(1, 3)
        items.append(item)
    return items


def generate_order_payload(owner_id: str, merchant_id: str) -> dict[str, Any]:
    """Generate payload for /api/orders endpoint."""
    items = generate_random_items()
    return {
        "owner_id": owner_id,
        "merchant_id": merchant_id,
        "line_items": items,
        "total_amount": sum(i["quantity"] * i["unit_price"] for i in items),
        "payment_method": random.choice(["upi", "cash", "card"]),
        "fulfillment_mode": "instant",
    }


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    owner_id: str,
    merchant_id: str,
) -> dict[str, Any]:
    """Place one order."""
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=generate_order_payload(owner_id, merchant_id),
            timeout=30.0
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 200:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_code": data.get("order_code"),
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


def check_codes(codes: list[str]) -> list[str]:
    """Return a list of problems with the allocated codes (empty if none)."""
    problems = []
    numbers = []
    for code in codes:
        match = CODE_PATTERN.match(code or "")
        if not match:
            problems.append(f"Malformed code: {code!r}")
        else:
            numbers.append(int(match.group(1)))

    if len(set(numbers)) != len(numbers):
        problems.append("Duplicate order codes allocated")
    if numbers and sorted(numbers) != list(range(min(numbers), min(numbers) + len(numbers))):
        problems.append("Order codes are not contiguous")
    return problems


async def run_simulation(owner_id: str, merchant_id: str, num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    """Run the concurrent order burst."""
    print("=" * 70)
    print("ORDER BURST SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        tasks = [send_order(client, i + 1, owner_id, merchant_id) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\nSuccessful Orders: {len(successful)}/{num_orders}")
    print(f"Failed Orders: {len(failed)}/{num_orders}")
    print(f"Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"Average Response: {avg_time}s")

    problems = check_codes([r["order_code"] for r in successful])
    if problems:
        print("\nORDER CODE PROBLEMS:")
        for problem in problems:
            print(f"   {problem}")
    else:
        print("\nAll order codes distinct and contiguous")

    if failed:
        print("\nFailed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "problems": problems,
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Burst Simulation")
    parser.add_argument("--owner-id", required=True, help="Registered student id")
    parser.add_argument("--merchant-id", required=True, help="Canteen admin id")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    summary = asyncio.run(run_simulation(args.owner_id, args.merchant_id, args.orders))
    sys.exit(1 if summary["problems"] or summary["failed"] else 0)
