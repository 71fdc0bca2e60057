"""Database model registry. Import all models here so Alembic can discover them."""

from tilapp.db.models.acronym import Acronym, AcronymCategoryPivot, Category
from tilapp.db.models.user import PasswordResetToken, Token, User, UserType
from tilapp.db.models.web_session import WebSession

__all__ = [
    "Acronym",
    "AcronymCategoryPivot",
    "Category",
    "PasswordResetToken",
    "Token",
    "User",
    "UserType",
    "WebSession",
]
