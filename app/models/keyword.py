from pydantic import BaseModel, ConfigDict


class KeywordScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    weight: float
