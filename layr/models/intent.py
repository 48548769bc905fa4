import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ConfigDict, Field, ValidationError, field_validator

from layr.constants import (
    Audience,
    AuthMode,
    CAPABILITY_AUTH,
    FieldType,
    LAYR_SUPPORTED_INTENT_EXTENSIONS,
    PaymentModel,
)
from layr.exceptions import IntentValidationError
from layr.models.base import LayrBaseModel


class IntentModel(LayrBaseModel):
    """Intent parts are immutable once validated."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)


class Plan(IntentModel):
    name: str
    price_monthly: float = Field(alias="priceMonthly", ge=0)
    features: tuple[str, ...] = ()


class Payments(IntentModel):
    model: PaymentModel
    plans: tuple[Plan, ...] = ()


class EntityField(IntentModel):
    name: str = Field(min_length=1)
    type: FieldType
    required: bool = False


class Entity(IntentModel):
    name: str = Field(min_length=1)
    fields: tuple[EntityField, ...] = ()


class Brand(IntentModel):
    name: str
    tagline: str | None = None


class Intent(IntentModel):
    """
    Validated description of the application to build.

    `goal` and `audience` are always present; `capabilities` is a set (order and
    duplicates in the input are irrelevant) that defaults to empty, never None.
    """

    goal: str = Field(min_length=1)
    audience: Audience
    capabilities: frozenset[str] = frozenset()
    auth: AuthMode | None = None
    payments: Payments | None = None
    entities: tuple[Entity, ...] = ()
    brand: Brand | None = None
    non_goals: tuple[str, ...] = Field(default=(), alias="nonGoals")

    @field_validator("goal", mode="before")
    @classmethod
    def validate_goal(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("capabilities", mode="before")
    @classmethod
    def validate_capabilities(cls, v: Any) -> frozenset[str]:
        if v is None:
            return frozenset()
        if isinstance(v, str):
            raise ValueError("capabilities must be a list of tags, not a string")
        return frozenset(str(tag).strip() for tag in v if str(tag).strip())

    @field_validator("entities", "non_goals", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @property
    def payment_model(self) -> PaymentModel | None:
        return self.payments.model if self.payments else None

    @property
    def needs_payments(self) -> bool:
        return self.payment_model not in (None, PaymentModel.NONE)

    @property
    def needs_auth(self) -> bool:
        return CAPABILITY_AUTH in self.capabilities or self.auth not in (None, AuthMode.NONE)

    @property
    def slug(self) -> str:
        """Project-safe name derived from the brand name, or the goal."""
        source = self.brand.name if self.brand else self.goal
        cleaned = "".join(ch if ch.isalnum() else "-" for ch in source.lower())
        slug = "-".join(part for part in cleaned.split("-") if part)
        return slug[:48].rstrip("-") or "layr-app"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Intent":
        """
        Validate a raw intent record.

        Raises:
            IntentValidationError: With one readable line per schema violation.
        """
        if not isinstance(data, dict):
            raise IntentValidationError(f"Intent must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = [f"{'.'.join(map(str, err['loc'])) or 'intent'}: {err['msg']}" for err in e.errors()]
            raise IntentValidationError("Invalid intent", errors=errors) from e

    @classmethod
    def from_file(cls, path: str | Path) -> "Intent":
        """Load an intent from a JSON or YAML file."""
        intent_path = Path(path)
        if intent_path.suffix.lower() not in LAYR_SUPPORTED_INTENT_EXTENSIONS:
            raise IntentValidationError(
                f"Unsupported intent file type '{intent_path.suffix}'. "
                f"Use one of: {', '.join(LAYR_SUPPORTED_INTENT_EXTENSIONS)}"
            )
        content = intent_path.read_text(encoding="utf-8")
        try:
            if intent_path.suffix.lower() == ".json":
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise IntentValidationError(f"Failed to parse intent file {intent_path}: {e}") from e
        return cls.from_dict(data)
