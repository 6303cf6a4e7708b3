#!/usr/bin/env python3
"""
Database initialisation script.

Creates tables and optionally seeds a demo client with device groups, devices
and ads for local development.

Usage:
    python scripts/init_db.py [--drop-existing] [--seed]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adcast.common.config import get_settings
from adcast.common.database import create_tables, db, drop_tables
from adcast.common.logger import get_logger
from adcast.models import Ad, Client, Device, DeviceGroup, ScrollText

logger = get_logger(__name__)


async def seed_data() -> None:
    """Seed one client with two groups of players and a few ads."""
    async with db.session() as session:
        session.add(Client(client_id="demo-client", name="Demo Client"))
        session.add_all(
            [
                DeviceGroup(group_id="demo-lobby", client_id="demo-client", name="Lobby", rcs_enabled=True),
                DeviceGroup(group_id="demo-cafe", client_id="demo-client", name="Cafe"),
            ]
        )
        await session.flush()

        devices = [
            Device(device_id=f"lobby-{i}", group_id="demo-lobby", android_id=f"lobby-android-{i}")
            for i in range(3)
        ] + [
            Device(device_id=f"cafe-{i}", group_id="demo-cafe", android_id=f"cafe-android-{i}")
            for i in range(2)
        ]
        session.add_all(devices)
        logger.info("Created devices", count=len(devices))

        ads = [
            Ad(ad_id="demo-ad-1", client_id="demo-client", name="Spring sale", url="media/demo-ad-1.mp4", duration=30),
            Ad(ad_id="demo-ad-2", client_id="demo-client", name="New menu", url="media/demo-ad-2.jpg", duration=10),
        ]
        session.add_all(ads)
        session.add(ScrollText(group_id="demo-lobby", message="Welcome to the demo lobby"))
        logger.info("Created ads", count=len(ads))

    logger.info("Database seeding completed")


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Initialize AdCast database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Seed demo client, groups, devices and ads",
    )
    args = parser.parse_args()

    settings = get_settings()
    await db.init()
    logger.info("Initializing database", url=settings.database.async_url.split("@")[-1])

    try:
        if args.drop_existing:
            logger.warning("Dropping existing tables...")
            await drop_tables()
        await create_tables()
        if args.seed:
            await seed_data()
    finally:
        await db.close()

    logger.info("Database initialization complete")


if __name__ == "__main__":
    asyncio.run(main())
