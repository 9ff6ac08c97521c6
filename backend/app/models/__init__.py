from app.models.tenant import Tenant, Branch
from app.models.role import Role
from app.models.user import User, UserRole, UserBranch
from app.models.menu import MenuCategory
from app.models.translation import Translation

__all__ = [
    "Tenant", "Branch",
    "Role",
    "User", "UserRole", "UserBranch",
    "MenuCategory",
    "Translation",
]
