import asyncio
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from counsel.core.db import SessionLocal, init_models
from counsel.modules.services.service import CatalogService
from counsel.modules.services.schemas import ServiceCreate
from counsel.modules.slots.service import SlotService
from counsel.modules.slots.schemas import SlotWindow

WORKING_DAYS = range(5)  # Monday to Friday
TIME_BLOCKS = [
    {"start": 9, "end": 10},
    {"start": 10, "end": 11},
    {"start": 14, "end": 15},
    {"start": 15, "end": 16},
]

def week_windows(week_start: datetime) -> list[SlotWindow]:
    """
    One-hour windows for every working day of the week starting at `week_start` (UTC).
    """
    windows = []
    for day in WORKING_DAYS:
        base = week_start + timedelta(days=day)
        for block in TIME_BLOCKS:
            windows.append(SlotWindow(
                start_time=base.replace(hour=block["start"]),
                end_time=base.replace(hour=block["end"]),
            ))
    return windows

async def main(consultant_ids: list[uuid.UUID]):
    """
    Seeds one consultation service and next week's slots for each consultant.
    """
    print("Starting seed...")
    await init_models()

    today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    next_monday = today + timedelta(days=7 - today.weekday())

    async with SessionLocal() as db:
        service = await CatalogService(db).create(ServiceCreate(
            name="Individual counseling",
            description="50-minute one-on-one session",
            price=Decimal("300000"),
        ))
        print(f"  - Created service {service.id}")

        slots = SlotService(db)
        for consultant_id in consultant_ids:
            created, skipped = await slots.create_slots(consultant_id, week_windows(next_monday))
            print(f"  - Consultant {consultant_id}: {len(created)} slots created, {skipped} skipped")

    print("Seed finished.")

if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: python scripts/seed_slots.py <consultant-uuid> [<consultant-uuid> ...]")
        sys.exit(1)
    asyncio.run(main([uuid.UUID(a) for a in sys.argv[1:]]))
