"""
Seed script to populate the database with sample identities, one per plan.

    python -m luna.scripts.seed_data
"""

import asyncio
from datetime import date

from luna.db import init_db, async_session_maker
from luna.services import create_user, get_user_by_email


SAMPLE_IDENTITIES = [
    {
        "email": "julia.silva@example.com",
        "whatsapp": "11999887766",
        "full_name": "Júlia Silva Santos",
        "birth_date": date(1996, 7, 15),
        "birth_time": "14:30",
        "birth_city": "São Paulo",
        "birth_state": "SP",
        "voice_preference": "feminine",
        "plan": "essencia",
        "terms_accepted": True,
    },
    {
        "email": "ana.costa@example.com",
        "whatsapp": "21988776655",
        "full_name": "Ana Paula Costa",
        "birth_date": date(1988, 11, 22),
        "birth_time": "08:15",
        "birth_city": "Rio de Janeiro",
        "birth_state": "RJ",
        "voice_preference": "feminine",
        "plan": "conexao",
        "terms_accepted": True,
    },
    {
        "email": "maria.oliveira@example.com",
        "whatsapp": "31977665544",
        "full_name": "Maria Fernanda Oliveira",
        "birth_date": date(1992, 3, 28),
        "birth_time": "22:00",
        "birth_city": "Belo Horizonte",
        "birth_state": "MG",
        "voice_preference": "masculine",
        "plan": "plenitude",
        "terms_accepted": True,
    },
]


async def seed_database():
    """Create the sample identities that do not exist yet"""
    print("🌱 Checking if seed data is needed...")

    await init_db()

    async with async_session_maker() as db:
        for data in SAMPLE_IDENTITIES:
            if await get_user_by_email(db, data["email"]):
                continue
            user = await create_user(db, data)
            print(f"✅ Created {user.full_name} ({user.plan}, {user.sun_sign}): {user.id}")

    print("🌱 Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed_database())
