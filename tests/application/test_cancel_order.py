import asyncio
from decimal import Decimal

import pytest

from storefront.application.cancel_order import CancelOrderUseCase
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderLineDTO
from storefront.application.get_order import GetOrderUseCase
from storefront.application.products import GetProductUseCase
from storefront.application.update_order_status import UpdateOrderStatusUseCase, UpdateOrderStatusDTO
from storefront.domain.exceptions import NotFoundError, InvalidOperationError
from storefront.domain.models import OrderStatus
from storefront.infrastructure.repositories import SQLAlchemyOrderRepository


async def _order(uow, read_cache, user_id, *lines):
    dto = CreateOrderDTO(
        user_id=user_id,
        items=[OrderLineDTO(product_id=pid, quantity=qty) for pid, qty in lines],
    )
    return await CreateOrderUseCase(uow, read_cache)(dto)


class TestCancelOrder:
    async def test_restores_stock_scenario(self, uow, read_cache, make_user, make_product, stock_of):
        user = await make_user()
        p1 = await make_product(name="Pen", price="5.00", stock=10)
        p2 = await make_product(name="Notebook", price="20.00", stock=4)

        order = await _order(uow, read_cache, user.id, (p1.id, 2), (p2.id, 1))
        assert order.total_amount == Decimal("30.00")
        assert order.status == OrderStatus.PENDING
        assert await stock_of(p1.id) == 8
        assert await stock_of(p2.id) == 3

        await CancelOrderUseCase(uow, read_cache)(order.id)

        assert await stock_of(p1.id) == 10
        assert await stock_of(p2.id) == 4
        view = await GetOrderUseCase(uow, read_cache)(order.id)
        assert view.status == OrderStatus.CANCELLED
        assert view.total_amount == Decimal("30.00")

    @pytest.mark.parametrize("status", [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.FAILED])
    async def test_cancellable_statuses(self, uow, read_cache, make_user, make_product, stock_of, status):
        user = await make_user()
        product = await make_product(stock=5)
        order = await _order(uow, read_cache, user.id, (product.id, 2))
        await UpdateOrderStatusUseCase(uow, read_cache)(UpdateOrderStatusDTO(order_id=order.id, status=status))

        await CancelOrderUseCase(uow, read_cache)(order.id)

        assert await stock_of(product.id) == 5

    @pytest.mark.parametrize("status", [OrderStatus.SHIPPED, OrderStatus.DELIVERED])
    async def test_shipped_or_delivered_cannot_be_cancelled(
        self, uow, read_cache, make_user, make_product, stock_of, status
    ):
        user = await make_user()
        product = await make_product(stock=5)
        order = await _order(uow, read_cache, user.id, (product.id, 2))
        await UpdateOrderStatusUseCase(uow, read_cache)(UpdateOrderStatusDTO(order_id=order.id, status=status))

        with pytest.raises(InvalidOperationError):
            await CancelOrderUseCase(uow, read_cache)(order.id)

        assert await stock_of(product.id) == 3
        assert (await GetOrderUseCase(uow, read_cache)(order.id)).status == status

    async def test_second_cancel_fails_without_restoring_twice(
        self, uow, read_cache, make_user, make_product, stock_of
    ):
        user = await make_user()
        product = await make_product(stock=5)
        order = await _order(uow, read_cache, user.id, (product.id, 2))
        cancel = CancelOrderUseCase(uow, read_cache)

        await cancel(order.id)
        with pytest.raises(InvalidOperationError):
            await cancel(order.id)

        assert await stock_of(product.id) == 5

    async def test_unknown_order(self, uow, read_cache):
        with pytest.raises(NotFoundError):
            await CancelOrderUseCase(uow, read_cache)("missing")

    async def test_flushes_cached_product_and_order(self, uow, read_cache, make_user, make_product):
        user = await make_user()
        product = await make_product(stock=5)
        order = await _order(uow, read_cache, user.id, (product.id, 2))
        get_product = GetProductUseCase(uow, read_cache)
        get_order = GetOrderUseCase(uow, read_cache)

        assert (await get_product(product.id)).stock == 3
        assert (await get_order(order.id)).status == OrderStatus.PENDING

        await CancelOrderUseCase(uow, read_cache)(order.id)

        assert (await get_product(product.id)).stock == 5
        assert (await get_order(order.id)).status == OrderStatus.CANCELLED

    async def test_read_loaded_before_cancel_is_not_cached(self, uow, read_cache, make_user, make_product, monkeypatch):
        user = await make_user()
        product = await make_product(stock=5)
        order = await _order(uow, read_cache, user.id, (product.id, 2))
        fetched = asyncio.Event()
        resume = asyncio.Event()
        original_get_by_id = SQLAlchemyOrderRepository.get_by_id

        async def get_by_id_then_wait(repo, order_id):
            loaded = await original_get_by_id(repo, order_id)
            if not resume.is_set():
                fetched.set()
                await resume.wait()
            return loaded

        monkeypatch.setattr(SQLAlchemyOrderRepository, "get_by_id", get_by_id_then_wait)
        get_order = GetOrderUseCase(uow, read_cache)

        reader = asyncio.create_task(get_order(order.id))
        await fetched.wait()
        await CancelOrderUseCase(uow, read_cache)(order.id)
        resume.set()
        assert (await reader).status == OrderStatus.PENDING

        assert (await get_order(order.id)).status == OrderStatus.CANCELLED
