"""Core portal types shared by the actor resolver, the action gateway and the routes."""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"


ADMIN_ROLES = frozenset({Role.ADMIN, Role.INSTRUCTOR})


def normalize_role(value: Any, default: Role = Role.STUDENT) -> Role:
    """Coerce a raw role value to a Role; blank falls back to ``default``, anything unknown to STUDENT."""
    candidate = str(value or default.value).strip().upper()
    try:
        return Role(candidate)
    except ValueError:
        return Role.STUDENT


def is_admin_role(role: Role | str) -> bool:
    return normalize_role(role) in ADMIN_ROLES


class Actor(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str = Field(min_length=1)
    role: Role = Role.STUDENT

    @classmethod
    def of(cls, email: str, role: Any = None, default_role: Role = Role.STUDENT) -> "Actor":
        return cls(email=str(email).strip().lower(), role=normalize_role(role, default_role))

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class ActionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str = Field(min_length=1)
    actor: Actor
    data: Any = None


class ActionEnvelope(BaseModel):
    """Reply shape of the workflow backend; ``data`` stays opaque."""

    ok: bool
    code: str = ""
    message: str = ""
    data: Any = None


class ApiErrorShape(BaseModel):
    error: str
    code: str
    details: Any = None
