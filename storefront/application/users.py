import asyncio
import logging
from typing import List, Optional
from pydantic import BaseModel

from storefront.domain.models import Role, User, new_id, utcnow
from storefront.domain.exceptions import NotFoundError, DuplicateResourceError, InvalidCredentialsError
from storefront.application.interfaces import PasswordHasher
from storefront.application.views import UserView

logger = logging.getLogger(__name__)


class RegisterUserDTO(BaseModel):
    name: str
    email: str
    password: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: Optional[Role] = None


class IdentityService:
    """Identity lookups used by the order workflow and the HTTP layer"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def resolve_user(self, user_id: str) -> User:
        async with self._uow() as uow:
            user = await uow.users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", "id", user_id)
        return user

    async def resolve_user_by_email(self, email: str) -> User:
        async with self._uow() as uow:
            user = await uow.users.get_by_email(email.lower())
        if not user:
            raise NotFoundError("User", "email", email)
        return user

    async def list_users(self) -> List[UserView]:
        async with self._uow() as uow:
            return [UserView.from_domain(u) for u in await uow.users.list_all()]


class RegisterUserUseCase:
    def __init__(self, unit_of_work, hasher: PasswordHasher):
        self._uow = unit_of_work
        self._hasher = hasher

    async def __call__(self, dto: RegisterUserDTO) -> UserView:
        email = dto.email.lower()
        logger.info(f"Registering user {email}")

        async with self._uow() as uow:
            if await uow.users.get_by_email(email):
                raise DuplicateResourceError(f"User with email {email} already exists")

            password_hash = await asyncio.to_thread(self._hasher.hash, dto.password)

            user = User(
                id=new_id(),
                name=dto.name,
                email=email,
                password_hash=password_hash,
                phone=dto.phone,
                address=dto.address,
                role=dto.role or Role.USER,
                created_at=utcnow(),
            )
            await uow.users.create(user)
            await uow.commit()

        logger.info(f"User registered: {user.id}")
        return UserView.from_domain(user)


class AuthenticateUserUseCase:
    def __init__(self, unit_of_work, hasher: PasswordHasher):
        self._uow = unit_of_work
        self._hasher = hasher

    async def __call__(self, email: str, password: str) -> UserView:
        logger.info(f"Login attempt for {email}")
        async with self._uow() as uow:
            user = await uow.users.get_by_email(email.lower())

        valid = user is not None and await asyncio.to_thread(self._hasher.verify, password, user.password_hash)
        if not valid:
            logger.warning(f"Invalid credentials for {email}")
            raise InvalidCredentialsError("Invalid email or password")
        return UserView.from_domain(user)
