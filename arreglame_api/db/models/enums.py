"""
Domain enumerations persisted by the ORM models.

Values are stored as plain strings; arreglame_api.api.enums registers them
for the API schema.
"""
from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    CLIENT = "CLIENT"
    WORKER = "WORKER"
    ADMIN = "ADMIN"


class ActiveRole(str, enum.Enum):
    """Modes a user can operate in; ADMIN is a held role, not a mode."""
    CLIENT = "CLIENT"
    WORKER = "WORKER"


class ServiceRequestStatus(str, enum.Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DifficultyLevel(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class ServiceSubcategory(str, enum.Enum):
    LAWN_MOWING = "LAWN_MOWING"
    GARDEN_CLEANUP = "GARDEN_CLEANUP"
    TREE_TRIMMING = "TREE_TRIMMING"
    PRESSURE_WASHING = "PRESSURE_WASHING"
    INTERIOR_PAINTING = "INTERIOR_PAINTING"
    EXTERIOR_PAINTING = "EXTERIOR_PAINTING"
    WALL_REPAIR = "WALL_REPAIR"
    OUTLET_INSTALLATION = "OUTLET_INSTALLATION"
    LIGHTING_INSTALLATION = "LIGHTING_INSTALLATION"
    WIRING_REPAIR = "WIRING_REPAIR"
    LEAK_REPAIR = "LEAK_REPAIR"
    DRAIN_CLEANING = "DRAIN_CLEANING"
    FAUCET_INSTALLATION = "FAUCET_INSTALLATION"


class NotificationType(str, enum.Enum):
    INFO = "INFO"
    PUSH = "PUSH"
    NEW_JOB = "NEW_JOB"
    JOB_UPDATE = "JOB_UPDATE"
    CHAT_MESSAGE = "CHAT_MESSAGE"
    PAYMENT = "PAYMENT"


class ExtraTimeStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TicketStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_REVIEW = "IN_REVIEW"
    CLOSED = "CLOSED"


class TicketPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
