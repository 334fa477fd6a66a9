"""
Actor context and role checks shared by every command.
"""
import uuid
from typing import Optional

from pydantic import BaseModel, field_validator

from ..errors import Forbidden, ValidationError
from ..models.models import User


ROLES = ("admin", "lead", "staff", "driver", "volunteer")
ROLE_ALIASES = {"employee": "staff"}


class ActorContext(BaseModel):
    """Who is calling. Built once by the authentication layer and passed to every operation."""

    username: str
    role: str
    hipaa_certified: bool = False
    is_driver: bool = False
    user_id: Optional[uuid.UUID] = None

    class Config:
        frozen = True

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("username is required")
        return v

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        v = str(v or "").strip().lower()
        v = ROLE_ALIASES.get(v, v)
        if v not in ROLES:
            raise ValueError(f"unknown role '{v}'")
        return v

    @property
    def is_driver_capable(self) -> bool:
        return self.is_driver or self.role == "driver"

    @property
    def is_manager(self) -> bool:
        return self.role in ("admin", "lead")

    @classmethod
    def build(cls, **kwargs) -> "ActorContext":
        """Construct an actor, turning pydantic validation failures into ValidationError."""
        try:
            return cls(**kwargs)
        except ValueError as e:
            raise ValidationError(f"Invalid actor: {e}") from e

    @classmethod
    def from_user(cls, user: User) -> "ActorContext":
        if user.is_deleted:
            raise Forbidden("User account is deleted")
        return cls.build(
            username=user.username,
            role=user.role,
            hipaa_certified=bool(user.hipaa_certified),
            is_driver=bool(user.is_driver),
            user_id=user.id,
        )


def require_roles(actor: ActorContext, *roles: str, action: str = "perform this action") -> None:
    if actor.role not in roles:
        raise Forbidden(f"Role '{actor.role}' may not {action}")


def has_full_client_access(actor: ActorContext) -> bool:
    """Admins, and HIPAA-certified leads, see protected client information."""
    if actor.role == "admin":
        return True
    return actor.role == "lead" and actor.hipaa_certified


def is_restricted_driver(actor: ActorContext) -> bool:
    """Driver-capable actors outside admin/lead only see and act on their own assignments."""
    return actor.is_driver_capable and not actor.is_manager


def can_record_mileage(actor: ActorContext) -> bool:
    return actor.is_driver_capable or actor.is_manager
