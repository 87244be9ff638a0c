from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional, List, Iterable, Dict
from sqlalchemy import select, insert, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.models import Order, OrderItem, OrderStatus, Product, Role, User, utcnow
from storefront.infrastructure.db_schema import users_tbl, products_tbl, orders_tbl, order_items_tbl
from storefront.application.interfaces import ProductRepository, UserRepository, OrderRepository


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_for_update(self, product_id: str) -> Optional[Product]:
        """Row lock held until the surrounding transaction ends"""
        result = await self._session.execute(
            select(products_tbl)
            .where(products_tbl.c.id == product_id)
            .with_for_update()
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id.in_(ids))
        )
        return {row.id: self._to_domain(row) for row in result.fetchall()}

    async def list_all(self) -> List[Product]:
        result = await self._session.execute(
            select(products_tbl).order_by(products_tbl.c.name.asc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def list_active(self) -> List[Product]:
        result = await self._session.execute(
            select(products_tbl)
            .where(products_tbl.c.active.is_(True))
            .order_by(products_tbl.c.name.asc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def list_by_category(self, category: str) -> List[Product]:
        result = await self._session.execute(
            select(products_tbl)
            .where(products_tbl.c.category == category)
            .order_by(products_tbl.c.name.asc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def find_active_by_name(self, name: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(
                products_tbl.c.name == name,
                products_tbl.c.active.is_(True)
            )
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, product: Product) -> None:
        stmt = insert(products_tbl).values(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            stock=product.stock,
            active=product.active,
            category=product.category,
            image_url=product.image_url,
            created_at=product.created_at,
            updated_at=product.updated_at
        )
        await self._session.execute(stmt)

    async def update_details(self, product: Product) -> None:
        # stock is moved only by reserve_stock / release_stock
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product.id)
            .values(
                name=product.name,
                description=product.description,
                price=product.price,
                active=product.active,
                category=product.category,
                image_url=product.image_url,
                updated_at=product.updated_at
            )
        )
        await self._session.execute(stmt)

    async def reserve_stock(self, product_id: str, quantity: int) -> bool:
        """Guarded decrement: matches no row when stock would go negative"""
        stmt = (
            update(products_tbl)
            .where(
                products_tbl.c.id == product_id,
                products_tbl.c.stock >= quantity
            )
            .values(
                stock=products_tbl.c.stock - quantity,
                updated_at=utcnow()
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def release_stock(self, product_id: str, quantity: int) -> None:
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(
                stock=products_tbl.c.stock + quantity,
                updated_at=utcnow()
            )
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> Product:
        return Product(
            id=row.id,
            name=row.name,
            description=row.description,
            price=row.price,
            stock=row.stock,
            active=row.active,
            category=row.category,
            image_url=row.image_url,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at)
        )


class SQLAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self._session.execute(
            select(users_tbl).where(users_tbl.c.id == user_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self._session.execute(
            select(users_tbl).where(users_tbl.c.email == email)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_all(self) -> List[User]:
        result = await self._session.execute(
            select(users_tbl).order_by(users_tbl.c.created_at.asc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, user: User) -> None:
        stmt = insert(users_tbl).values(
            id=user.id,
            name=user.name,
            email=user.email,
            password_hash=user.password_hash,
            phone=user.phone,
            address=user.address,
            role=user.role,
            created_at=user.created_at
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> User:
        return User(
            id=row.id,
            name=row.name,
            email=row.email,
            password_hash=row.password_hash,
            phone=row.phone,
            address=row.address,
            role=Role(row.role),
            created_at=_aware(row.created_at)
        )


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        return await self._get_one(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )

    async def get_for_update(self, order_id: str) -> Optional[Order]:
        return await self._get_one(
            select(orders_tbl).where(orders_tbl.c.id == order_id).with_for_update()
        )

    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        return await self._get_one(
            select(orders_tbl).where(orders_tbl.c.order_number == order_number)
        )

    async def list_by_user(self, user_id: str) -> List[Order]:
        return await self._get_many(
            select(orders_tbl)
            .where(orders_tbl.c.user_id == user_id)
            .order_by(orders_tbl.c.created_at.asc())
        )

    async def list_all(self) -> List[Order]:
        return await self._get_many(
            select(orders_tbl).order_by(orders_tbl.c.created_at.asc())
        )

    async def create(self, order: Order) -> None:
        await self._session.execute(
            insert(orders_tbl).values(
                id=order.id,
                order_number=order.order_number,
                user_id=order.user_id,
                total_amount=order.total_amount,
                status=order.status,
                shipping_address=order.shipping_address,
                notes=order.notes,
                created_at=order.created_at,
                updated_at=order.updated_at
            )
        )
        if order.items:
            await self._session.execute(
                insert(order_items_tbl),
                [
                    {
                        "id": item.id,
                        "order_id": order.id,
                        "product_id": item.product_id,
                        "position": position,
                        "quantity": item.quantity,
                        "price": item.price,
                        "subtotal": item.subtotal
                    }
                    for position, item in enumerate(order.items)
                ]
            )

    async def update_status(self, order_id: str, status: OrderStatus, updated_at: datetime) -> None:
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id)
            .values(
                status=status,
                updated_at=updated_at
            )
        )
        await self._session.execute(stmt)

    async def _get_one(self, stmt) -> Optional[Order]:
        result = await self._session.execute(stmt)
        row = result.fetchone()
        if not row:
            return None
        items = await self._load_items([row.id])
        return self._to_domain(row, items[row.id])

    async def _get_many(self, stmt) -> List[Order]:
        result = await self._session.execute(stmt)
        rows = result.fetchall()
        items = await self._load_items([row.id for row in rows])
        return [self._to_domain(row, items[row.id]) for row in rows]

    async def _load_items(self, order_ids: List[str]) -> Dict[str, List[OrderItem]]:
        items = defaultdict(list)
        if not order_ids:
            return items
        result = await self._session.execute(
            select(order_items_tbl)
            .where(order_items_tbl.c.order_id.in_(order_ids))
            .order_by(order_items_tbl.c.order_id, order_items_tbl.c.position.asc())
        )
        for row in result.fetchall():
            items[row.order_id].append(
                OrderItem(
                    id=row.id,
                    product_id=row.product_id,
                    quantity=row.quantity,
                    price=row.price,
                    subtotal=row.subtotal
                )
            )
        return items

    def _to_domain(self, row, items: List[OrderItem]) -> Order:
        """DB → Domain"""
        return Order(
            id=row.id,
            order_number=row.order_number,
            user_id=row.user_id,
            items=items,
            total_amount=row.total_amount,
            status=OrderStatus(row.status),
            shipping_address=row.shipping_address,
            notes=row.notes,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at)
        )
