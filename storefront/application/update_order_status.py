import logging
from pydantic import BaseModel

from storefront.domain.models import OrderStatus
from storefront.domain.exceptions import NotFoundError, InvalidStateTransitionError
from storefront.application.read_cache import ReadCache, ORDERS, USER_ORDERS
from storefront.application.views import OrderView, project_order

logger = logging.getLogger(__name__)


class UpdateOrderStatusDTO(BaseModel):
    order_id: str
    status: OrderStatus


class UpdateOrderStatusUseCase:
    """Moves an order to a new status.

    Only CANCELLED and DELIVERED are protected: any other current status may
    move to any status. Forward-only ordering is not enforced.
    """

    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, dto: UpdateOrderStatusDTO) -> OrderView:
        logger.info(f"Updating order {dto.order_id} to status {dto.status.value}")

        async with self._uow() as uow:
            order = await uow.orders.get_for_update(dto.order_id)
            if not order:
                raise NotFoundError("Order", "id", dto.order_id)

            if order.is_terminal():
                logger.warning(f"Rejected status change of {order.status.value} order {order.id}")
                raise InvalidStateTransitionError(order.status, dto.status)

            order.status = dto.status
            order.touch()
            await uow.orders.update_status(order.id, order.status, order.updated_at)
            view = await project_order(uow, order)
            await uow.commit()

        await self._cache.invalidate(ORDERS, USER_ORDERS)
        logger.info(f"Order {dto.order_id} status updated to {dto.status.value}")
        return view
