from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, TypeAdapter

from storefront.domain.models import Order, OrderStatus, Product, Role, User


class OrderItemView(BaseModel):
    id: str
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    price: Decimal
    subtotal: Decimal


class OrderView(BaseModel):
    id: str
    order_number: str
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    items: List[OrderItemView]
    total_amount: Decimal
    status: OrderStatus
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order, user: Optional[User], products: Dict[str, Product]):
        return cls(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            user_name=user.name if user else None,
            user_email=user.email if user else None,
            items=[
                OrderItemView(
                    id=item.id,
                    product_id=item.product_id,
                    product_name=products[item.product_id].name if item.product_id in products else None,
                    quantity=item.quantity,
                    price=item.price,
                    subtotal=item.subtotal if item.subtotal is not None else Decimal("0"),
                )
                for item in order.items
            ],
            total_amount=order.total_amount,
            status=order.status,
            shipping_address=order.shipping_address,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class ProductView(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    active: bool
    category: str
    image_url: Optional[str] = None

    @classmethod
    def from_domain(cls, product: Product):
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            stock=product.stock,
            active=product.active,
            category=product.category,
            image_url=product.image_url,
        )


class UserView(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: Role

    @classmethod
    def from_domain(cls, user: User):
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            address=user.address,
            role=user.role,
        )


ORDER_VIEW = TypeAdapter(OrderView)
ORDER_VIEW_LIST = TypeAdapter(List[OrderView])
PRODUCT_VIEW = TypeAdapter(ProductView)
PRODUCT_VIEW_LIST = TypeAdapter(List[ProductView])


async def project_order(uow, order: Order) -> OrderView:
    """Load the user and products an order refers to and build its view"""
    user = await uow.users.get_by_id(order.user_id)
    products = await uow.products.get_many(item.product_id for item in order.items)
    return OrderView.from_domain(order, user, products)


async def project_orders(uow, orders: List[Order]) -> List[OrderView]:
    users: Dict[str, Optional[User]] = {}
    for user_id in {order.user_id for order in orders}:
        users[user_id] = await uow.users.get_by_id(user_id)
    products = await uow.products.get_many(
        item.product_id for order in orders for item in order.items
    )
    return [OrderView.from_domain(order, users[order.user_id], products) for order in orders]
