import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def generate_order_number(now: Optional[datetime] = None) -> str:
    """ORD-<epoch millis>-<8 uppercase hex chars>"""
    now = now or utcnow()
    millis = int(now.timestamp() * 1000)
    suffix = str(uuid.uuid4())[:8].upper()
    return f"ORD-{millis}-{suffix}"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.DELIVERED})
NON_CANCELLABLE_STATUSES = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED})


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class User(BaseModel):
    """Domain Entity — storefront account"""
    id: str
    name: str
    email: str
    password_hash: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: Role = Role.USER
    created_at: datetime


class Product(BaseModel):
    """Domain Entity — catalog product"""
    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    active: bool = True
    category: str
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def has_stock_for(self, quantity: int) -> bool:
        return self.stock >= quantity


class OrderItem(BaseModel):
    """Order line. Price is captured at purchase time and never re-read from the product."""
    id: str
    product_id: str
    quantity: int
    price: Decimal
    subtotal: Optional[Decimal] = None

    @classmethod
    def purchase(cls, product: Product, quantity: int) -> "OrderItem":
        unit_price = product.price
        return cls(
            id=new_id(),
            product_id=product.id,
            quantity=quantity,
            price=unit_price,
            subtotal=unit_price * quantity,
        )


class Order(BaseModel):
    """Aggregate root — an order and the items it owns"""
    id: str
    order_number: str
    user_id: str
    items: List[OrderItem] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    status: OrderStatus = OrderStatus.PENDING
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def start(cls, user_id: str, shipping_address: Optional[str], notes: Optional[str]) -> "Order":
        now = utcnow()
        return cls(
            id=new_id(),
            order_number=generate_order_number(now),
            user_id=user_id,
            status=OrderStatus.PENDING,
            shipping_address=shipping_address,
            notes=notes,
            total_amount=Decimal("0"),
            created_at=now,
            updated_at=now,
        )

    def add_item(self, item: OrderItem) -> None:
        self.items.append(item)

    def calculate_total(self) -> Decimal:
        # Missing subtotals count as zero
        self.total_amount = sum(
            (item.subtotal for item in self.items if item.subtotal is not None),
            Decimal("0"),
        )
        return self.total_amount

    def is_terminal(self) -> bool:
        """Business rule: CANCELLED and DELIVERED orders never change"""
        return self.status in TERMINAL_STATUSES

    def can_be_cancelled(self) -> bool:
        """Business rule: shipped, delivered or already cancelled orders stay as they are"""
        return self.status not in NON_CANCELLABLE_STATUSES and self.status != OrderStatus.CANCELLED

    def touch(self) -> None:
        self.updated_at = utcnow()
