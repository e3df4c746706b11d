import logging
from decimal import Decimal
from typing import List, Optional

from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.orm import Session

from .clients import ProductCatalog, UserDirectory
from .errors import InsufficientStock, OrderError, ProductNotFound, UpstreamError, UserNotFound
from .models import Order, OrderItem
from .schemas import OrderCreate

log = logging.getLogger(__name__)

ORDERS_CREATED = Counter("orders_created_total", "Orders created successfully")
ORDERS_FAILED = Counter("order_create_failures_total", "Order create failures", ["reason"])

CENTS = Decimal("0.01")
UNKNOWN_USER = "Unknown User"


def to_money(value) -> Decimal:
    # str() first so 10.1 does not become 10.0999999...
    return Decimal(str(value)).quantize(CENTS)


class OrderService:
    """
    Order creation and lookup.

    Creation validates the user, then each product in request order, before
    touching the database; the order and its items are then written in one
    transaction. Stock is checked but not reserved, so two concurrent orders
    can both pass the check.
    """

    def __init__(self, db: Session, users: UserDirectory, products: ProductCatalog):
        self.db = db
        self.users = users
        self.products = products

    def create_order(self, order_data: OrderCreate) -> Order:
        log.info("Processing order for user %d (%d items)", order_data.user_id, len(order_data.items))
        try:
            lines = self._validate(order_data)
        except UserNotFound:
            ORDERS_FAILED.labels(reason="user_not_found").inc()
            raise
        except ProductNotFound:
            ORDERS_FAILED.labels(reason="product_not_found").inc()
            raise
        except InsufficientStock:
            ORDERS_FAILED.labels(reason="insufficient_stock").inc()
            raise
        except UpstreamError:
            ORDERS_FAILED.labels(reason="upstream").inc()
            raise

        total = sum((price * qty for _, qty, price, _ in lines), Decimal("0")).quantize(CENTS)

        order = Order(user_id=order_data.user_id, total_amount=total, status="pending")
        order.items = [
            OrderItem(product_id=pid, quantity=qty, price=price, product_name=name)
            for pid, qty, price, name in lines
        ]
        try:
            self.db.add(order)
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            ORDERS_FAILED.labels(reason="database").inc()
            log.exception("Error persisting order for user %d", order_data.user_id)
            raise

        self.db.refresh(order)
        ORDERS_CREATED.inc()
        log.info("Order %d created: total=%s items=%d", order.id, order.total_amount, len(order.items))
        return order

    def _validate(self, order_data: OrderCreate):
        """Returns [(product_id, quantity, unit_price, product_name), ...]."""
        self.users.get_user(order_data.user_id)

        lines = []
        for item in order_data.items:
            product = self.products.get_product(item.product_id)
            if product["stock"] < item.quantity:
                raise InsufficientStock(product["name"], product["stock"], item.quantity)
            lines.append((item.product_id, item.quantity, to_money(product["price"]), product["name"]))
        return lines

    def display_name(self, user_id: int) -> str:
        """User's name for read views; never fails the read."""
        try:
            return self.users.get_user(user_id)["name"]
        except (OrderError, UpstreamError, KeyError, TypeError) as e:
            log.warning("Failed to fetch user %d: %s", user_id, e)
            return UNKNOWN_USER

    def list_orders(self) -> List[Order]:
        return list(self.db.execute(
            select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        ).scalars().all())

    def orders_for_user(self, user_id: int) -> List[Order]:
        return list(self.db.execute(
            select(Order).where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        ).scalars().all())

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.db.get(Order, order_id)

    def update_status(self, order_id: int, status: str) -> Optional[Order]:
        order = self.db.get(Order, order_id)
        if order is None:
            return None
        order.status = status
        self.db.flush()
        self.db.refresh(order)
        log.info("Order %d status -> %s", order_id, status)
        return order

    def delete_order(self, order_id: int) -> bool:
        order = self.db.get(Order, order_id)
        if order is None:
            return False
        # items go with it (delete-orphan cascade)
        self.db.delete(order)
        self.db.flush()
        log.info("Order %d deleted", order_id)
        return True
