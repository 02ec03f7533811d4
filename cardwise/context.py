from dataclasses import dataclass
from typing import Optional

from cardwise.errors import PermissionDeniedError, ValidationError
from cardwise.models import UserRole


@dataclass(frozen=True)
class RequestContext:
    """Who is calling. Built per request and passed down explicitly."""

    user_id: Optional[int] = None
    role: UserRole = UserRole.USER

    @classmethod
    def from_headers(
        cls, user_id: Optional[str], role: Optional[str]
    ) -> "RequestContext":
        """Build from raw X-User-Id / X-User-Role values; blanks mean anonymous USER."""
        parsed_id = None
        if user_id not in (None, ""):
            try:
                parsed_id = int(user_id)
            except ValueError:
                raise ValidationError(f"X-User-Id must be an integer, got {user_id!r}") from None

        parsed_role = UserRole.USER
        if role not in (None, ""):
            try:
                parsed_role = UserRole(role.strip().upper())
            except ValueError:
                allowed = ", ".join(r.value for r in UserRole)
                raise ValidationError(
                    f"X-User-Role must be one of {allowed}, got {role!r}"
                ) from None

        return cls(user_id=parsed_id, role=parsed_role)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def require_admin(self) -> None:
        if not self.is_admin:
            raise PermissionDeniedError("Admin privileges required")

    def require_self_or_admin(self, user_id: int) -> None:
        if self.is_admin:
            return
        if self.user_id is None or self.user_id != user_id:
            raise PermissionDeniedError(f"Not allowed to act on user {user_id}")


SYSTEM = RequestContext(role=UserRole.ADMIN)
