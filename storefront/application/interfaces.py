from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Iterable, Dict
from storefront.domain.models import Order, OrderStatus, Product, User


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_for_update(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        pass

    @abstractmethod
    async def list_all(self) -> List[Product]:
        pass

    @abstractmethod
    async def list_active(self) -> List[Product]:
        pass

    @abstractmethod
    async def list_by_category(self, category: str) -> List[Product]:
        pass

    @abstractmethod
    async def find_active_by_name(self, name: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def create(self, product: Product) -> None:
        pass

    @abstractmethod
    async def update_details(self, product: Product) -> None:
        pass

    @abstractmethod
    async def reserve_stock(self, product_id: str, quantity: int) -> bool:
        pass

    @abstractmethod
    async def release_stock(self, product_id: str, quantity: int) -> None:
        pass


class UserRepository(ABC):
    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def list_all(self) -> List[User]:
        pass

    @abstractmethod
    async def create(self, user: User) -> None:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_for_update(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def list_all(self) -> List[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def update_status(self, order_id: str, status: OrderStatus, updated_at: datetime) -> None:
        pass


class CacheBackend(ABC):
    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        pass

    @abstractmethod
    async def get_counter(self, key: str) -> int:
        """Current value of a counter, 0 when it was never incremented"""

    @abstractmethod
    async def incr_counter(self, key: str) -> int:
        pass


class PasswordHasher(ABC):
    """Blocking, CPU-bound. Async callers run it in a worker thread."""

    @abstractmethod
    def hash(self, password: str) -> str:
        pass

    @abstractmethod
    def verify(self, password: str, password_hash: str) -> bool:
        pass
