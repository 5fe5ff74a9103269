import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import next_timestamp, utcnow
from ..core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..core.security import create_access_token, get_password_hash, verify_password
from ..models.user import User

logger = logging.getLogger(__name__)


class UserService:
    """Registration, login and profile management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _by_username(self, username: str) -> Optional[User]:
        return (await self.db.execute(select(User).where(User.username == username))).scalars().first()

    async def _email_taken(self, email: str, exclude_user_id: int = None) -> bool:
        stmt = select(User.id).where(User.email == email)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        return (await self.db.scalar(stmt)) is not None

    async def register(self, username: str, password: str, email: Optional[str] = None) -> dict:
        if await self._by_username(username):
            raise ConflictError("Username already exists")
        if email and await self._email_taken(email):
            raise ConflictError("Email already in use")

        now = utcnow()
        user = User(
            username=username,
            email=email or None,
            password_hash=get_password_hash(password),
            created_at=now,
            updated_at=now,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Username or email already in use")
        logger.info(f"Registered user {user.id} ({username})")
        return user.to_dict()

    async def login(self, username: str, password: str) -> dict:
        user = await self._by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for username '{username}'")
            raise AuthenticationError("Invalid username or password")

        token = create_access_token({"sub": str(user.id), "username": user.username})
        return {
            "token": token,
            "user": {"id": user.id, "username": user.username, "email": user.email},
        }

    async def get_by_id(self, user_id: int) -> dict:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User profile not found.")
        return user.to_dict()

    async def update_profile(self, user_id: int, email: Optional[str]) -> dict:
        """Set or clear (``None``) the user's email; email equality is case-sensitive."""
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        if email is not None and await self._email_taken(email, exclude_user_id=user_id):
            raise ConflictError("Email already in use by another account.")

        user.email = email
        user.updated_at = next_timestamp(user.updated_at)
        await self.db.commit()
        return user.to_dict()

    async def change_password(self, user_id: int, old_password: str, new_password: str) -> dict:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        if not verify_password(old_password, user.password_hash):
            raise ValidationError("Incorrect current password.")
        if old_password == new_password:
            raise ValidationError("New password cannot be the same as the old password.")

        user.password_hash = get_password_hash(new_password)
        user.updated_at = next_timestamp(user.updated_at)
        await self.db.commit()
        logger.info(f"User {user_id} changed password")
        return {"message": "Password changed successfully."}
