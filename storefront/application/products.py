import logging
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel

from storefront.domain.models import Product, new_id, utcnow
from storefront.domain.exceptions import NotFoundError, DuplicateResourceError, InvalidRequestError
from storefront.application.read_cache import ReadCache, ORDERS, USER_ORDERS, PRODUCTS
from storefront.application.views import ProductView, PRODUCT_VIEW, PRODUCT_VIEW_LIST

logger = logging.getLogger(__name__)


class ListProductsUseCase:
    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def all(self) -> List[ProductView]:
        return await self._list("all", lambda uow: uow.products.list_all())

    async def active(self) -> List[ProductView]:
        return await self._list("active", lambda uow: uow.products.list_active())

    async def by_category(self, category: str) -> List[ProductView]:
        return await self._list(f"category:{category}", lambda uow: uow.products.list_by_category(category))

    async def _list(self, key: str, query) -> List[ProductView]:
        async def load():
            logger.info(f"Fetching products ({key}) from database")
            async with self._uow() as uow:
                return [ProductView.from_domain(p) for p in await query(uow)]

        return await self._cache.get_or_load(PRODUCTS, key, load, PRODUCT_VIEW_LIST)


class GetProductUseCase:
    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, product_id: str) -> ProductView:
        async def load():
            async with self._uow() as uow:
                product = await uow.products.get_by_id(product_id)
                return ProductView.from_domain(product) if product else None

        view = await self._cache.get_or_load(PRODUCTS, f"id:{product_id}", load, PRODUCT_VIEW)
        if view is None:
            raise NotFoundError("Product", "id", product_id)
        return view


class CreateProductDTO(BaseModel):
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    active: bool = True
    category: str
    image_url: Optional[str] = None


class UpdateProductDTO(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    active: Optional[bool] = None
    category: Optional[str] = None
    image_url: Optional[str] = None


def _check_price(price: Decimal) -> None:
    if price <= 0:
        raise InvalidRequestError("Price must be greater than 0")


class CreateProductUseCase:
    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, dto: CreateProductDTO) -> ProductView:
        logger.info(f"Creating product {dto.name}")
        _check_price(dto.price)
        if dto.stock < 0:
            raise InvalidRequestError("Stock cannot be negative")

        async with self._uow() as uow:
            if dto.active and await uow.products.find_active_by_name(dto.name):
                raise DuplicateResourceError(f"Active product named '{dto.name}' already exists")

            now = utcnow()
            product = Product(id=new_id(), created_at=now, updated_at=now, **dto.model_dump())
            await uow.products.create(product)
            await uow.commit()

        await self._cache.invalidate(PRODUCTS)
        return ProductView.from_domain(product)


class UpdateProductUseCase:
    """Edits catalog details. Stock is not editable here.

    Order views embed product names, so order regions are flushed too.
    Prices already captured on order items are never touched.
    """

    def __init__(self, unit_of_work, read_cache: ReadCache):
        self._uow = unit_of_work
        self._cache = read_cache

    async def __call__(self, product_id: str, dto: UpdateProductDTO) -> ProductView:
        logger.info(f"Updating product {product_id}")
        if dto.price is not None:
            _check_price(dto.price)

        async with self._uow() as uow:
            product = await uow.products.get_for_update(product_id)
            if not product:
                raise NotFoundError("Product", "id", product_id)

            changes = dto.model_dump(exclude_unset=True, exclude_none=True)
            updated = product.model_copy(update={**changes, "updated_at": utcnow()})

            if updated.active and (updated.name != product.name or not product.active):
                clash = await uow.products.find_active_by_name(updated.name)
                if clash and clash.id != product.id:
                    raise DuplicateResourceError(f"Active product named '{updated.name}' already exists")

            await uow.products.update_details(updated)
            await uow.commit()

        await self._cache.invalidate(PRODUCTS, ORDERS, USER_ORDERS)
        return ProductView.from_domain(updated)
