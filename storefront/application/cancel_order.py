import logging

from storefront.domain.models import OrderStatus
from storefront.domain.exceptions import NotFoundError, InvalidOperationError
from storefront.application.read_cache import ReadCache, ORDERS, USER_ORDERS, PRODUCTS

logger = logging.getLogger(__name__)


class CancelOrderUseCase:
    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, order_id: str) -> None:
        logger.info(f"Cancelling order {order_id}")

        async with self._uow() as uow:
            order = await uow.orders.get_for_update(order_id)
            if not order:
                raise NotFoundError("Order", "id", order_id)

            if not order.can_be_cancelled():
                logger.warning(f"Rejected cancellation of {order.status.value} order {order.id}")
                raise InvalidOperationError(f"Cannot cancel order that is already {order.status.value}")

            # Inverse of creation: every line goes back to its product
            for item in order.items:
                await uow.products.release_stock(item.product_id, item.quantity)

            order.status = OrderStatus.CANCELLED
            order.touch()
            await uow.orders.update_status(order.id, order.status, order.updated_at)
            await uow.commit()

        await self._cache.invalidate(ORDERS, USER_ORDERS, PRODUCTS)
        logger.info(f"Order {order_id} cancelled")
