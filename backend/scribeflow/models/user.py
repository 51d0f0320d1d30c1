# scribeflow/models/user.py
"""
Database model for users.
Represents a member of the transcription team: a worker who drafts
transcriptions, an admin who reviews them, or a super-admin who manages
the roster.
"""
import uuid
from tortoise import fields, models

class User(models.Model):
    """
    User database model.

    Security:
    - Password is stored as a hash (never store plain text passwords)
    - Email is the login name and must be unique
    - Role is fixed at creation; the admin API refuses to change it
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    name = fields.CharField(max_length=128)
    email = fields.CharField(max_length=256, unique=True, index=True)  # Login name
    password_hash = fields.CharField(max_length=255)
    role = fields.CharField(max_length=16, default="worker")  # "worker" | "admin" | "super-admin"
    created_at = fields.DatetimeField(auto_now_add=True)
    last_active = fields.DatetimeField(null=True)  # Touched on login

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "users"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastActive": self.last_active.isoformat() if self.last_active else None,
        }
