"""Dynamic block definitions."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ConditionOperator = Literal[">", ">=", "=", "!=", "<", "<=", "exists", "not_exists"]
OutputShape = Literal["list", "bullets", "paragraph", "table", "table-no-borders"]

_VALUELESS_OPERATORS = frozenset({"exists", "not_exists"})


class BlockCondition(BaseModel):
    """Predicate over one provider field plus the fragment emitted when it holds."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    field: str
    operator: ConditionOperator
    value: str | None = None
    label: str = ""
    text: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_text(cls, value: Any) -> Any:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def _check_value(self) -> BlockCondition:
        if self.operator not in _VALUELESS_OPERATORS and self.value is None:
            raise ValueError(f"Operator '{self.operator}' on '{self.field}' requires a value")
        if not self.label and self.text is None:
            raise ValueError(f"Condition on '{self.field}' needs a label or text")
        return self


class AlwaysIncludeItem(BaseModel):
    """Fragment emitted regardless of condition outcomes."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    label: str = ""
    value_field: str | None = None
    text: str | None = None

    @model_validator(mode="after")
    def _check_content(self) -> AlwaysIncludeItem:
        if self.text is None and not (self.label and self.value_field):
            raise ValueError("Always-include item needs text or a label with value_field")
        return self


class DynamicBlockDefinition(BaseModel):
    """Named, conditionally assembled text bound to one placeholder."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    name: str
    placeholder: str
    output_shape: OutputShape = "list"
    conditions: list[BlockCondition] = Field(default_factory=list)
    always_include: list[AlwaysIncludeItem] = Field(default_factory=list)
