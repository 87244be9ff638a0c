import logging
from typing import List

from storefront.domain.exceptions import NotFoundError
from storefront.application.read_cache import ReadCache, ORDERS, USER_ORDERS
from storefront.application.views import OrderView, ORDER_VIEW, ORDER_VIEW_LIST, project_order, project_orders

logger = logging.getLogger(__name__)


class GetOrderUseCase:
    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, order_id: str) -> OrderView:
        async def load():
            logger.info(f"Fetching order {order_id} from database")
            async with self._uow() as uow:
                order = await uow.orders.get_by_id(order_id)
                return await project_order(uow, order) if order else None

        view = await self._cache.get_or_load(ORDERS, f"id:{order_id}", load, ORDER_VIEW)
        if view is None:
            raise NotFoundError("Order", "id", order_id)
        return view


class GetOrderByNumberUseCase:
    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, order_number: str) -> OrderView:
        async def load():
            logger.info(f"Fetching order with number {order_number} from database")
            async with self._uow() as uow:
                order = await uow.orders.get_by_order_number(order_number)
                return await project_order(uow, order) if order else None

        view = await self._cache.get_or_load(ORDERS, f"number:{order_number}", load, ORDER_VIEW)
        if view is None:
            raise NotFoundError("Order", "order_number", order_number)
        return view


class ListUserOrdersUseCase:
    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, user_id: str) -> List[OrderView]:
        async def load():
            logger.info(f"Fetching orders for user {user_id} from database")
            async with self._uow() as uow:
                user = await uow.users.get_by_id(user_id)
                if not user:
                    return None
                orders = await uow.orders.list_by_user(user_id)
                return await project_orders(uow, orders)

        views = await self._cache.get_or_load(USER_ORDERS, user_id, load, ORDER_VIEW_LIST)
        if views is None:
            raise NotFoundError("User", "id", user_id)
        return views


class ListAllOrdersUseCase:
    """Admin listing, always read from the store"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> List[OrderView]:
        logger.info("Fetching all orders")
        async with self._uow() as uow:
            orders = await uow.orders.list_all()
            return await project_orders(uow, orders)
