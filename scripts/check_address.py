"""
Delivery Address Check

Runs the delivery zone resolver against the configured database and prints
the outcome.
Run from project root: python scripts/check_address.py "Via Roma 1, Torino" --amount 32.5
"""

import argparse
import asyncio
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from app.core.config import setup_logging
from app.database import async_session_maker, engine
from app.services.delivery_zones import DeliveryZoneResolver
from app.services.settings_store import SettingsStore


async def check(addresses: list[str], amount: float, as_json: bool) -> bool:
    resolver = DeliveryZoneResolver(SettingsStore(async_session_maker))
    all_ok = True

    for address in addresses:
        result = await resolver.validate_address(address, order_amount=amount)
        all_ok = all_ok and result.is_within_zone

        if as_json:
            print(json.dumps({"address": address, **result.to_dict()}, ensure_ascii=False))
            continue

        print("-" * 60)
        print(f"Address:   {address}")
        if not result.is_valid:
            print(f"INVALID    {result.error} [{result.error_code}]")
            continue
        print(f"Resolved:  {result.formatted_address}")
        print(f"Distance:  {result.distance:.2f} km")
        if result.is_within_zone:
            print(f"Zone:      {result.zone_id}")
            print(f"Fee:       €{result.delivery_fee:.2f}")
            print(f"ETA:       {result.estimated_time}")
        else:
            print(f"REFUSED    {result.error} [{result.error_code}]")

    await engine.dispose()
    return all_ok


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check delivery addresses against the delivery zones")
    parser.add_argument("addresses", nargs="+", help="Addresses to check")
    parser.add_argument("--amount", type=float, default=0.0, help="Order amount for the free-delivery threshold")
    parser.add_argument("--json", action="store_true", help="One JSON object per address")
    parser.add_argument("--verbose", action="store_true", help="Show service logs")
    args = parser.parse_args()

    if args.verbose:
        setup_logging()

    ok = asyncio.run(check(args.addresses, args.amount, args.json))
    sys.exit(0 if ok else 1)
