"""
Seed Script

Creates the tables, seeds the default settings and, optionally, a small
demo menu.
Run from project root: python scripts/seed.py [--zones] [--menu]
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from app.core.config import get_settings, setup_logging
from app.database import async_session_maker, engine, init_db
from app.schemas import CategoryCreate, ProductCreate
from app.services import catalog
from app.services.delivery_zones import DeliveryZoneResolver
from app.services.settings_store import SettingsStore

DEMO_MENU = {
    "Pizze Classiche": [
        ("Margherita", "Pomodoro, mozzarella, basilico", 7.00),
        ("Marinara", "Pomodoro, aglio, origano", 6.00),
        ("Diavola", "Pomodoro, mozzarella, salame piccante", 8.50),
    ],
    "Bevande": [
        ("Acqua naturale", "50 cl", 1.50),
        ("Birra Moretti", "33 cl", 3.50),
    ],
}


async def seed(reset_zones: bool, with_menu: bool) -> None:
    settings = get_settings()
    print("=" * 60)
    print(f"Seeding {settings.app_name}")
    print(f"Database: {settings.database_url.split('@')[-1]}")
    print("=" * 60)

    await init_db()

    store = SettingsStore(async_session_maker)
    if not await store.initialize():
        print("Could not seed default settings")
        sys.exit(1)
    print(f"Settings ready ({len(await store.snapshot())} keys)")

    if reset_zones:
        zones = await DeliveryZoneResolver(store).initialize_default_zones()
        print(f"Delivery zones reset to defaults ({len(zones)} zones)")

    if with_menu:
        async with async_session_maker() as db:
            if await catalog.list_categories(db):
                print("Menu already present, skipping demo menu")
            else:
                for position, (category_name, products) in enumerate(DEMO_MENU.items()):
                    category = await catalog.create_category(
                        db, CategoryCreate(name=category_name, sort_order=position)
                    )
                    for name, description, price in products:
                        await catalog.create_product(db, ProductCreate(
                            name=name,
                            description=description,
                            price=price,
                            category_id=category.id,
                        ))
                print(f"Demo menu created ({sum(len(p) for p in DEMO_MENU.values())} products)")

    await engine.dispose()
    print("Done")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the storefront database")
    parser.add_argument("--zones", action="store_true", help="Overwrite delivery zones with the defaults")
    parser.add_argument("--menu", action="store_true", help="Create a demo menu when the catalog is empty")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(seed(args.zones, args.menu))
