"""Seed the database with a demo admin and a spread of work orders."""

import asyncio
from datetime import datetime, timedelta

from app.db import crud
from app.db.engine import async_session_factory, create_tables
from app.services import work_orders
from app.services.auth import context_for, hash_password

DEMO_EMAIL = "admin@example.com"

DEMO_ORDERS = [
    {"customer_name": "Khalid Al Mansoori", "customer_phone": "0501234567", "area": "Al Barsha",
     "area_code": "brs", "work_order_type": "Installation", "supervisor": "Omar", "technician": "Ravi",
     "hours": 2},
    {"customer_name": "Sara Haddad", "customer_phone": "0559876543", "area": "Jumeirah",
     "area_code": "JMR", "work_order_type": "Maintenance", "supervisor": "Omar", "technician": "Ajay",
     "work_order_status": "Need Tomorrow", "description": "Pump pressure low"},
    {"customer_name": "Villa 14 Management", "customer_phone": "042223344", "area": "Mirdif",
     "area_code": "MRD", "work_order_type": "Preventive", "work_order_status": "preventive pending"},
    {"customer_name": "Leila Nasser", "customer_phone": "0524445566", "area": "Al Barsha",
     "area_code": "BRS", "work_order_type": "Repair", "supervisor": "Hana", "technician": "Ravi",
     "work_order_status": "Completed", "job_status": "Attend", "hours": 3.5},
]


async def seed():
    await create_tables()

    async with async_session_factory() as db:
        user = await crud.get_user_by_email(db, DEMO_EMAIL)
        if user:
            print("Demo admin already exists, skipping seed.")
            return

        user = await crud.create_user(
            db, DEMO_EMAIL, hash_password("change-me-now"), display_name="Demo Admin", role="admin",
        )
        print(f"Created admin: {user.email} (password: change-me-now)")
        actor = context_for(user)

        today = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0)
        for offset, data in enumerate(DEMO_ORDERS):
            wo = await work_orders.create_work_order(
                db, {**data, "visit_date": today + timedelta(days=offset - 1)}, actor,
            )
            print(f"Created work order: {wo.work_order_number} ({wo.customer_name}, {wo.work_order_status})")

    print("\nSeed complete. Start the server with: uvicorn app.main:app --reload")


if __name__ == "__main__":
    asyncio.run(seed())
