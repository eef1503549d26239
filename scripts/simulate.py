"""
Order Rush Simulation

Fires concurrent storefront orders at a running server and reports
outcomes per error code. Useful to watch stock counters and delivery
validation under load.
Run from project root: python scripts/simulate.py --orders 50
"""

import argparse
import asyncio
import random
import sys
import time
from collections import Counter
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

API_BASE_URL = "http://localhost:8001"

FIRST_NAMES = ["Mario", "Giulia", "Luca", "Francesca", "Marco", "Chiara", "Paolo", "Sara"]
LAST_NAMES = ["Rossi", "Bianchi", "Ferrari", "Esposito", "Romano", "Colombo", "Ricci"]
ADDRESSES = [
    "Via Roma 1, Torino",
    "Piazza Castello, Torino",
    "Corso Francia 200, Torino",
    "Moncalieri",
    "Chieri",
    "Milano",  # out of range
]


def generate_order(products: list[dict]) -> dict[str, Any]:
    items = [
        {"product_id": p["id"], "quantity": random.randint(1, 3)}
        for p in random.sample(products, k=min(len(products), random.randint(1, 3)))
    ]
    order_type = random.choice(["delivery", "delivery", "pickup"])
    payload = {
        "order_type": order_type,
        "customer_name": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        "customer_phone": f"+39 3{random.randint(10, 99)} {random.randint(1000000, 9999999)}",
        "items": items,
        "notes": random.choice([None, "Citofono rotto", "Senza cipolla"]),
    }
    if order_type == "delivery":
        payload["delivery_address"] = random.choice(ADDRESSES)
    return payload


async def send_order(client: httpx.AsyncClient, order_num: int, products: list[dict]) -> dict[str, Any]:
    start_time = time.time()
    try:
        response = await client.post("/api/orders", json=generate_order(products), timeout=30.0)
    except httpx.HTTPError as e:
        return {"order_num": order_num, "success": False, "code": "transport", "error": str(e)[:100],
                "time": round(time.time() - start_time, 3)}

    elapsed = round(time.time() - start_time, 3)
    if response.status_code == 201:
        order = response.json()["order"]
        return {"order_num": order_num, "success": True, "code": "ok", "total": order["total_amount"],
                "time": elapsed}

    detail = response.json().get("detail")
    code = detail.get("error_code", "error") if isinstance(detail, dict) else f"http_{response.status_code}"
    return {"order_num": order_num, "success": False, "code": code, "error": str(detail)[:100], "time": elapsed}


async def run_simulation(num_orders: int) -> dict[str, Any]:
    print("=" * 70)
    print("ORDER RUSH SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient(base_url=API_BASE_URL) as client:
        response = await client.get("/api/products", params={"active_only": True})
        response.raise_for_status()
        products = response.json()
        if not products:
            print("No active products. Run: python scripts/seed.py --menu")
            sys.exit(1)

        start_time = time.time()
        results = await asyncio.gather(*(send_order(client, i + 1, products) for i in range(num_orders)))
        total_time = round(time.time() - start_time, 2)

        stock_after = (await client.get("/api/products")).json()

    successful = [r for r in results if r["success"]]
    outcomes = Counter(r["code"] for r in results)

    print(f"\nSuccessful Orders: {len(successful)}/{num_orders}")
    print(f"Total Time: {total_time}s")
    print("\nOutcomes:")
    for code, count in outcomes.most_common():
        print(f"   {code:<22} {count}")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\nAverage Response: {avg_time}s")
        print(f"Revenue: €{sum(r['total'] for r in successful):.2f}")

    negative = [p["name"] for p in stock_after if p["stock_quantity"] is not None and p["stock_quantity"] < 0]
    if negative:
        print(f"\nOversold products: {', '.join(negative)}")

    print("=" * 70)
    return {"total": num_orders, "successful": len(successful), "outcomes": dict(outcomes)}


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Rush Simulation")
    parser.add_argument("--orders", type=int, default=50, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="Server base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url
    asyncio.run(run_simulation(args.orders))
