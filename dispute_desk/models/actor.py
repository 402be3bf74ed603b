"""Acting party model."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SenderRole = Literal["customer", "merchant", "admin", "system", "ai"]


class Actor(BaseModel):
    """The party performing an operation, passed explicitly to every mutation."""

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, description="User ID, absent for system and AI")
    role: SenderRole = Field(description="Role the actor is acting in")
    name: str | None = Field(default=None, description="Display name for thread messages")

    @property
    def is_staff(self) -> bool:
        """Admins and the system itself may perform administrative operations."""
        return self.role in ("admin", "system")

    @classmethod
    def system(cls) -> "Actor":
        return cls(role="system", name="System")

    @classmethod
    def ai(cls) -> "Actor":
        return cls(role="ai", name="AI Analysis")
