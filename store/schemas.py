"""Models for the parts of the sample store API the labeler touches."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Category = Literal["training", "testing"]


class _StoreModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Project(_StoreModel):
    id: int
    name: str
    owner: str = ""


class Sample(_StoreModel):
    id: int
    filename: str = ""
    label: str = ""
    chart_type: str = Field(default="", alias="chartType")
    is_processing: bool = Field(default=False, alias="isProcessing")
    is_disabled: bool = Field(default=False, alias="isDisabled")
    metadata: dict[str, Any] = Field(default_factory=dict)

    def describe(self) -> str:
        return f'"{self.filename}" (ID: {self.id})'


class SamplePage(_StoreModel):
    success: bool = True
    error: str | None = None
    samples: list[Sample] = Field(default_factory=list)


class ProposedChanges(_StoreModel):
    label: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_disabled: bool | None = Field(default=None, alias="isDisabled")
