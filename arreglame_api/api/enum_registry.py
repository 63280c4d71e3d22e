"""
Registry of domain enums exposed to API clients.

Every enum the API accepts or returns is registered once here so clients can
discover the allowed values at GET /api/v1/enums.
"""
from __future__ import annotations

import enum
from typing import Dict, List, Optional, Type

from arreglame_api.db.models.enums import (
    ActiveRole,
    DifficultyLevel,
    ExtraTimeStatus,
    NotificationType,
    ServiceRequestStatus,
    ServiceSubcategory,
    TicketStatus,
    UserRole,
)


class EnumRegistry:
    def __init__(self) -> None:
        self._enums: Dict[str, Type[enum.Enum]] = {}
        self._descriptions: Dict[str, Optional[str]] = {}

    # PUBLIC_INTERFACE
    def register(self, enum_cls: Type[enum.Enum], name: Optional[str] = None, description: Optional[str] = None) -> str:
        """
        Register an enum under a name (defaults to the class name).

        Re-registering the same enum is a no-op; a different enum under an
        existing name raises ValueError.
        """
        type_name = name or enum_cls.__name__
        current = self._enums.get(type_name)
        if current is not None and current is not enum_cls:
            raise ValueError(f"Duplicate enum type name: {type_name}")
        self._enums[type_name] = enum_cls
        if description is not None or type_name not in self._descriptions:
            self._descriptions[type_name] = description
        return type_name

    def get(self, name: str) -> Type[enum.Enum]:
        return self._enums[name]

    def __contains__(self, name: str) -> bool:
        return name in self._enums

    # PUBLIC_INTERFACE
    def describe(self) -> List[dict]:
        return [
            {
                "name": name,
                "description": self._descriptions.get(name),
                "values": [member.value for member in enum_cls],
            }
            for name, enum_cls in sorted(self._enums.items())
        ]


enum_registry = EnumRegistry()


# PUBLIC_INTERFACE
def register_enum(enum_cls: Type[enum.Enum], name: Optional[str] = None, description: Optional[str] = None) -> str:
    """Register an enum in the global registry."""
    return enum_registry.register(enum_cls, name, description)


register_enum(UserRole, description="Roles a user can hold")
register_enum(ActiveRole, description="Mode the user is operating in")
register_enum(ServiceRequestStatus, description="Lifecycle state of a job")
register_enum(DifficultyLevel, description="Difficulty used by the quick quote")
register_enum(ServiceSubcategory, description="Kinds of work offered in the catalog")
register_enum(NotificationType, description="Notification categories")
register_enum(TicketStatus, description="Support ticket state")
register_enum(ExtraTimeStatus, description="State of a worker's extra time request")
