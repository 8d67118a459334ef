"""
User model with the role used for per-route access checks.
"""
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Application user.

    Roles:
        - admin: full access, including destructive operations
        - manager: may adjust stock and delete documents
        - staff: day-to-day operations
    """

    class Role(models.TextChoices):
        ADMIN = 'admin', 'Admin'
        MANAGER = 'manager', 'Manager'
        STAFF = 'staff', 'Staff'

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.STAFF,
        db_index=True,
        help_text="Role used for access control"
    )
    department = models.CharField(max_length=100, blank=True, default='')

    def has_role(self, *roles) -> bool:
        if self.is_superuser:
            return True
        return self.role in roles
