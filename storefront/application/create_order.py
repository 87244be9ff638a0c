import logging
from typing import List, Optional
from pydantic import BaseModel

from storefront.domain.models import Order, OrderItem
from storefront.domain.exceptions import NotFoundError, InsufficientStockError, InvalidRequestError
from storefront.application.read_cache import ReadCache, ORDERS, USER_ORDERS, PRODUCTS
from storefront.application.views import OrderView, project_order


logger = logging.getLogger(__name__)


class OrderLineDTO(BaseModel):
    product_id: str
    quantity: int


class CreateOrderDTO(BaseModel):
    user_id: str
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderLineDTO]


class CreateOrderUseCase:
    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, order_data: CreateOrderDTO) -> OrderView:
        logger.info(f"Creating order for user {order_data.user_id}")
        self._validate(order_data)

        async with self._uow() as uow:
            # 1. User
            user = await uow.users.get_by_id(order_data.user_id)
            if not user:
                raise NotFoundError("User", "id", order_data.user_id)

            # 2. Empty PENDING order
            order = Order.start(user.id, order_data.shipping_address, order_data.notes)

            # 3. Lines, in request order; any failure rolls back every decrement so far
            for line in order_data.items:
                product = await uow.products.get_for_update(line.product_id)
                if not product:
                    raise NotFoundError("Product", "id", line.product_id)
                if not product.has_stock_for(line.quantity):
                    logger.warning(
                        f"Insufficient stock for {product.name}: requested {line.quantity}, available {product.stock}"
                    )
                    raise InsufficientStockError(product.name, line.quantity, product.stock)

                if not await uow.products.reserve_stock(product.id, line.quantity):
                    current = await uow.products.get_by_id(product.id)
                    raise InsufficientStockError(product.name, line.quantity, current.stock if current else 0)

                order.add_item(OrderItem.purchase(product, line.quantity))

            # 4. Total
            order.calculate_total()

            # 5. Persist
            await uow.orders.create(order)
            view = await project_order(uow, order)
            await uow.commit()

        await self._cache.invalidate(ORDERS, USER_ORDERS, PRODUCTS)
        logger.info(f"Order created: {order.order_number} total {order.total_amount}")
        return view

    @staticmethod
    def _validate(order_data: CreateOrderDTO) -> None:
        if not order_data.items:
            raise InvalidRequestError("Order must contain at least one item")
        for line in order_data.items:
            if line.quantity <= 0:
                raise InvalidRequestError(f"Quantity for product {line.product_id} must be greater than 0")
