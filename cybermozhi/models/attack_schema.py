from pydantic import BaseModel, ConfigDict, Field


class CyberAttackInput(BaseModel):
    description: str = Field(..., min_length=1)


class CyberAttackOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str
    relevant_laws: str = Field(..., alias="relevantLaws")
