from sqlalchemy import (
    Table, Column, String, Integer, Numeric, Boolean, Enum, DateTime, ForeignKey, MetaData
)
from sqlalchemy.sql import func

from storefront.domain.models import OrderStatus, Role

metadata = MetaData()


users_tbl = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), unique=True, index=True, nullable=False),
    Column("password_hash", String, nullable=False),
    Column("phone", String(50), nullable=True),
    Column("address", String(500), nullable=True),
    Column("role", Enum(Role), nullable=False, default=Role.USER),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("description", String(1000), nullable=True),
    Column("price", Numeric(10, 2), nullable=False),
    Column("stock", Integer, nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("category", String(100), nullable=False, index=True),
    Column("image_url", String, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_number", String, unique=True, index=True, nullable=False),
    Column("user_id", String, ForeignKey("users.id"), nullable=False, index=True),
    Column("total_amount", Numeric(10, 2), nullable=False),
    Column("status", Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING),
    Column("shipping_address", String(500), nullable=True),
    Column("notes", String(1000), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False)
)


order_items_tbl = Table(
    "order_items",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("product_id", String, ForeignKey("products.id"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("price", Numeric(10, 2), nullable=False),
    Column("subtotal", Numeric(10, 2), nullable=False)
)
