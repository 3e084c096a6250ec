from typing import Any

from pydantic import BaseModel


class DebugResponse(BaseModel):
    success: bool = True
    data: Any = None
    message: str | None = None
