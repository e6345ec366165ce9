"""Seed a day of sample lunch orders for local testing of payments and reminders."""
from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()

from app import models
from app.config import get_settings
from app.db import create_all, get_sessionmaker, init_engine
from app.utils.time import local_today

SAMPLE_ORDERS = [
    ("user-0001", "Nguyễn Văn An", "an@example.com", "com-ga", "Cơm gà", 45000, 1),
    ("user-0001", "Nguyễn Văn An", "an@example.com", "tra-da", "Trà đá", 5000, 2),
    ("user-0002", "Trần Thị Bình", "binh@example.com", "bun-bo", "Bún bò", 50000, 1),
    ("user-0003", "Lê Minh Châu", "chau@example.com", "com-suon", "Cơm sườn", 40000, 1),
]


def main() -> None:
    settings = get_settings()
    print(f"Using database: {settings.database_url}")

    init_engine()
    create_all()
    session = get_sessionmaker()()
    today = local_today(settings.REMINDER_TIMEZONE)

    try:
        orders = [
            models.DailyOrder(
                date=today,
                user_id=user_id,
                user_name=user_name,
                user_email=user_email,
                menu_item_id=item_id,
                menu_item_name=item_name,
                menu_item_price=price,
                quantity=quantity,
            )
            for user_id, user_name, user_email, item_id, item_name, price, quantity in SAMPLE_ORDERS
        ]
        session.add_all(orders)
        session.commit()
        print(f"Seeded {len(orders)} unpaid orders for {today}.")
        for order in orders:
            print(f"  order #{order.id}: {order.user_name} - {order.menu_item_name} x{order.quantity}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
