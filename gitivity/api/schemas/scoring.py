from pydantic import BaseModel, Field


class Achievement(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    earned: bool = True


class Multiplier(BaseModel):
    name: str
    value: float


class ScoreBreakdown(BaseModel):
    total: int
    creator_score: int
    collaborator_score: int
    craftsmanship_score: int
    achievements: list[Achievement] = Field(default_factory=list)
    multipliers: list[Multiplier] = Field(default_factory=list)
