import pytest

from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderLineDTO
from storefront.application.get_order import (
    GetOrderUseCase, GetOrderByNumberUseCase, ListUserOrdersUseCase, ListAllOrdersUseCase
)
from storefront.domain.exceptions import NotFoundError
from storefront.domain.models import OrderStatus, utcnow


async def _order(uow, read_cache, user_id, product_id, qty=1):
    dto = CreateOrderDTO(user_id=user_id, items=[OrderLineDTO(product_id=product_id, quantity=qty)])
    return await CreateOrderUseCase(uow, read_cache)(dto)


async def _sneak_status(uow, order_id, status):
    """Write behind the cache's back"""
    async with uow() as session:
        await session.orders.update_status(order_id, status, utcnow())
        await session.commit()


class TestOrderQueries:
    async def test_get_by_id_and_number(self, uow, read_cache, make_user, make_product):
        user = await make_user()
        product = await make_product()
        order = await _order(uow, read_cache, user.id, product.id, 2)

        by_id = await GetOrderUseCase(uow, read_cache)(order.id)
        by_number = await GetOrderByNumberUseCase(uow, read_cache)(order.order_number)

        assert by_id.id == by_number.id == order.id
        assert by_id.order_number == order.order_number
        assert by_id.items[0].quantity == 2

    async def test_repeated_reads_hit_the_cache(self, uow, read_cache, make_user, make_product):
        user = await make_user()
        product = await make_product()
        order = await _order(uow, read_cache, user.id, product.id)
        get = GetOrderUseCase(uow, read_cache)

        first = await get(order.id)
        await _sneak_status(uow, order.id, OrderStatus.SHIPPED)
        second = await get(order.id)

        assert second == first
        assert second.status == OrderStatus.PENDING

    async def test_missing_order_is_not_cached(self, uow, read_cache, cache_backend):
        get = GetOrderUseCase(uow, read_cache)

        with pytest.raises(NotFoundError):
            await get("missing")
        with pytest.raises(NotFoundError):
            await GetOrderByNumberUseCase(uow, read_cache)("ORD-0-NOPE")

        assert len(cache_backend) == 0

    async def test_orders_for_user(self, uow, read_cache, make_user, make_product):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        product = await make_product(stock=10)
        first = await _order(uow, read_cache, alice.id, product.id)
        await _order(uow, read_cache, bob.id, product.id)
        second = await _order(uow, read_cache, alice.id, product.id)

        views = await ListUserOrdersUseCase(uow, read_cache)(alice.id)

        assert [v.id for v in views] == [first.id, second.id]
        assert all(v.user_name == "Alice" for v in views)

    async def test_orders_for_user_refresh_after_new_order(self, uow, read_cache, make_user, make_product):
        user = await make_user()
        product = await make_product(stock=10)
        listing = ListUserOrdersUseCase(uow, read_cache)

        assert await listing(user.id) == []
        await _order(uow, read_cache, user.id, product.id)

        assert len(await listing(user.id)) == 1

    async def test_orders_for_unknown_user(self, uow, read_cache):
        with pytest.raises(NotFoundError):
            await ListUserOrdersUseCase(uow, read_cache)("nobody")

    async def test_list_all(self, uow, read_cache, make_user, make_product):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        product = await make_product(stock=10)
        await _order(uow, read_cache, alice.id, product.id)
        await _order(uow, read_cache, bob.id, product.id)

        views = await ListAllOrdersUseCase(uow)()

        assert {v.user_name for v in views} == {"Alice", "Bob"}
