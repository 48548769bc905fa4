"""Layr models package for intents, tasks, and task graphs."""

from .base import LayrBaseModel
from .intent import Brand, Entity, EntityField, Intent, Payments, Plan
from .task import Task, TaskGraph

__all__ = [
    "Brand",
    "Entity",
    "EntityField",
    "Intent",
    "LayrBaseModel",
    "Payments",
    "Plan",
    "Task",
    "TaskGraph",
]
