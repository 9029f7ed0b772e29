from pydantic import BaseModel
from typing import Optional

class Principal(BaseModel):
    """The signed-in lot operator. uid doubles as the tenant (parkId)."""
    uid: str
    email: str
    name: Optional[str] = None

    @property
    def park_id(self) -> str:
        return self.uid
