import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, status

from storefront.database import AsyncSessionLocal
from storefront.presentation.schemas import (
    CreateOrderRequest, UpdateStatusRequest, CreateProductRequest, UpdateProductRequest,
    RegisterRequest, LoginRequest, MessageResponse, ErrorResponse
)
from storefront.application.read_cache import ReadCache
from storefront.application.views import OrderView, ProductView, UserView
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderLineDTO
from storefront.application.get_order import (
    GetOrderUseCase, GetOrderByNumberUseCase, ListUserOrdersUseCase, ListAllOrdersUseCase
)
from storefront.application.update_order_status import UpdateOrderStatusUseCase, UpdateOrderStatusDTO
from storefront.application.cancel_order import CancelOrderUseCase
from storefront.application.products import (
    ListProductsUseCase, GetProductUseCase, CreateProductUseCase, UpdateProductUseCase,
    CreateProductDTO, UpdateProductDTO
)
from storefront.application.users import (
    IdentityService, RegisterUserUseCase, AuthenticateUserUseCase, RegisterUserDTO
)
from storefront.domain.exceptions import (
    DomainException, NotFoundError, InsufficientStockError, InvalidStateTransitionError,
    InvalidOperationError, DuplicateResourceError, InvalidRequestError, InvalidCredentialsError
)
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.infrastructure.security import PBKDF2PasswordHasher

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InsufficientStockError: status.HTTP_409_CONFLICT,
    InvalidStateTransitionError: status.HTTP_409_CONFLICT,
    InvalidOperationError: status.HTTP_409_CONFLICT,
    DuplicateResourceError: status.HTTP_409_CONFLICT,
    InvalidRequestError: status.HTTP_400_BAD_REQUEST,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _to_http(error: Exception) -> HTTPException:
    if isinstance(error, DomainException):
        code = _ERROR_STATUS.get(type(error), status.HTTP_400_BAD_REQUEST)
        return HTTPException(status_code=code, detail=str(error))
    logger.error(f"Unexpected error: {error}", exc_info=error)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service unavailable")


# Dependencies
def get_unit_of_work() -> UnitOfWork:
    return UnitOfWork(AsyncSessionLocal)


def get_read_cache(request: Request) -> ReadCache:
    return request.app.state.read_cache


def get_password_hasher() -> PBKDF2PasswordHasher:
    return PBKDF2PasswordHasher()


# Orders
@router.post("/orders", response_model=OrderView, responses=_ERROR_RESPONSES, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: CreateOrderRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    """Create a new order"""
    try:
        dto = CreateOrderDTO(
            user_id=request.user_id,
            shipping_address=request.shipping_address,
            notes=request.notes,
            items=[OrderLineDTO(product_id=i.product_id, quantity=i.quantity) for i in request.items]
        )
        return await CreateOrderUseCase(uow, cache)(dto)
    except Exception as e:
        raise _to_http(e)


@router.get("/orders", response_model=List[OrderView])
async def list_orders(uow: UnitOfWork = Depends(get_unit_of_work)):
    """All orders (admin)"""
    try:
        return await ListAllOrdersUseCase(uow)()
    except Exception as e:
        raise _to_http(e)


@router.get("/orders/order-number/{order_number}", response_model=OrderView, responses=_ERROR_RESPONSES)
async def get_order_by_number(
    order_number: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        return await GetOrderByNumberUseCase(uow, cache)(order_number)
    except Exception as e:
        raise _to_http(e)


@router.get("/orders/user/{user_id}", response_model=List[OrderView], responses=_ERROR_RESPONSES)
async def list_user_orders(
    user_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        return await ListUserOrdersUseCase(uow, cache)(user_id)
    except Exception as e:
        raise _to_http(e)


@router.get("/orders/{order_id}", response_model=OrderView, responses=_ERROR_RESPONSES)
async def get_order(
    order_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        return await GetOrderUseCase(uow, cache)(order_id)
    except Exception as e:
        raise _to_http(e)


@router.put("/orders/{order_id}/status", response_model=OrderView, responses=_ERROR_RESPONSES)
async def update_order_status(
    order_id: str,
    request: UpdateStatusRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        dto = UpdateOrderStatusDTO(order_id=order_id, status=request.status)
        return await UpdateOrderStatusUseCase(uow, cache)(dto)
    except Exception as e:
        raise _to_http(e)


@router.delete("/orders/{order_id}", response_model=MessageResponse, responses=_ERROR_RESPONSES)
async def cancel_order(
    order_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        await CancelOrderUseCase(uow, cache)(order_id)
        return MessageResponse(message="Order cancelled successfully")
    except Exception as e:
        raise _to_http(e)


# Products
@router.get("/products", response_model=List[ProductView])
async def list_products(uow: UnitOfWork = Depends(get_unit_of_work), cache: ReadCache = Depends(get_read_cache)):
    try:
        return await ListProductsUseCase(uow, cache).all()
    except Exception as e:
        raise _to_http(e)


@router.get("/products/available", response_model=List[ProductView])
async def list_available_products(
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        return await ListProductsUseCase(uow, cache).active()
    except Exception as e:
        raise _to_http(e)


@router.get("/products/category/{category}", response_model=List[ProductView])
async def list_products_by_category(
    category: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        return await ListProductsUseCase(uow, cache).by_category(category)
    except Exception as e:
        raise _to_http(e)


@router.get("/products/{product_id}", response_model=ProductView, responses=_ERROR_RESPONSES)
async def get_product(
    product_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        return await GetProductUseCase(uow, cache)(product_id)
    except Exception as e:
        raise _to_http(e)


@router.post("/products", response_model=ProductView, responses=_ERROR_RESPONSES, status_code=status.HTTP_201_CREATED)
async def create_product(
    request: CreateProductRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        return await CreateProductUseCase(uow, cache)(CreateProductDTO(**request.model_dump()))
    except Exception as e:
        raise _to_http(e)


@router.put("/products/{product_id}", response_model=ProductView, responses=_ERROR_RESPONSES)
async def update_product(
    product_id: str,
    request: UpdateProductRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    cache: ReadCache = Depends(get_read_cache)
):
    try:
        dto = UpdateProductDTO(**request.model_dump(exclude_unset=True))
        return await UpdateProductUseCase(uow, cache)(product_id, dto)
    except Exception as e:
        raise _to_http(e)


# Users
@router.get("/users", response_model=List[UserView])
async def list_users(uow: UnitOfWork = Depends(get_unit_of_work)):
    try:
        return await IdentityService(uow).list_users()
    except Exception as e:
        raise _to_http(e)


@router.get("/users/{user_id}", response_model=UserView, responses=_ERROR_RESPONSES)
async def get_user(user_id: str, uow: UnitOfWork = Depends(get_unit_of_work)):
    try:
        return UserView.from_domain(await IdentityService(uow).resolve_user(user_id))
    except Exception as e:
        raise _to_http(e)


# Auth
@router.post("/auth/register", response_model=UserView, responses=_ERROR_RESPONSES, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: PBKDF2PasswordHasher = Depends(get_password_hasher)
):
    try:
        return await RegisterUserUseCase(uow, hasher)(RegisterUserDTO(**request.model_dump()))
    except Exception as e:
        raise _to_http(e)


@router.post("/auth/login", response_model=UserView, responses={401: {"model": ErrorResponse}})
async def login(
    request: LoginRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: PBKDF2PasswordHasher = Depends(get_password_hasher)
):
    try:
        return await AuthenticateUserUseCase(uow, hasher)(request.email, request.password)
    except Exception as e:
        raise _to_http(e)
