from typing import Any

from pydantic import BaseModel, ConfigDict


class LayrBaseModel(BaseModel):
    """
    Base model for all Layr models with strict field validation.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict, omitting unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)
