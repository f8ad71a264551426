"""
Seed data for the load tests.

Creates one event with a small capacity and LOAD_USERS players, each with a
single participant, then prints the ids locustfile.py expects:

  python locust/seed.py          (from backend/, DATABASE_URL pointing at the target DB)
  export LOAD_EVENT_ID=... LOAD_USER_RANGE=... LOAD_PARTICIPANT_START=...
"""

import asyncio
import os
from datetime import date, timedelta
from decimal import Decimal

from chessbook.db.base import Base
from chessbook.db.session import AsyncSessionLocal, engine
from chessbook.models import Event, Participant, User
from chessbook.models.enums import Gender, UserRole

LOAD_USERS = int(os.getenv("LOAD_USERS", "100"))
LOAD_CAPACITY = int(os.getenv("LOAD_CAPACITY", "10"))


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        organizer = User(email=f"organizer+{os.getpid()}@load.test", full_name="Load Organizer", role=UserRole.ORGANIZER)
        db.add(organizer)
        await db.flush()

        event = Event(
            organizer_id=organizer.id,
            name="Last Slot Rapid Open",
            location="Load Test Hall",
            start_date=date.today() + timedelta(days=30),
            entry_fee=Decimal("500"),
            max_capacity=LOAD_CAPACITY,
            is_online=False,
        )
        db.add(event)

        users = []
        for i in range(LOAD_USERS):
            user = User(email=f"player{i}+{os.getpid()}@load.test", full_name=f"Player {i}")
            users.append(user)
            db.add(user)
        await db.flush()

        participants = []
        for user in users:
            participant = Participant(
                user_id=user.id,
                full_name=user.full_name,
                date_of_birth=date(2008, 1, 1),
                gender=Gender.MALE,
            )
            participants.append(participant)
            db.add(participant)
        await db.commit()

    print(f"LOAD_EVENT_ID={event.id}")
    print(f"LOAD_USER_RANGE={users[0].id}-{users[-1].id}")
    print(f"LOAD_PARTICIPANT_START={participants[0].id}")


if __name__ == "__main__":
    asyncio.run(seed())
