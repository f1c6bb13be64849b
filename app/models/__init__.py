"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.work_order import WorkOrder
from app.models.auth_models import User, UserSession

__all__ = ["Base", "WorkOrder", "User", "UserSession"]
