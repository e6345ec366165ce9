"""Daily order model (group lunch orders owned by the ordering front end)."""
from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class DailyOrder(Base):
    """One user's order of one menu item on a given day."""

    __tablename__ = "daily_orders"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_daily_orders_positive_quantity"),
        Index("ix_daily_orders_date_paid", "date", "is_paid"),
        Index("ix_daily_orders_user_paid", "user_id", "is_paid"),
    )

    date: Mapped[str] = mapped_column(String(10), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    user_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    menu_item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    menu_item_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # Price in VND.
    menu_item_price: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def amount(self) -> int:
        return self.menu_item_price * self.quantity
