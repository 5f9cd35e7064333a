from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class DashboardFiltersModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    country: List[str] = Field(default_factory=list)
    region: List[str] = Field(default_factory=list)
    hub: List[str] = Field(default_factory=list)
    broker: List[str] = Field(default_factory=list)
    cedant: List[str] = Field(default_factory=list)
    insured: List[str] = Field(default_factory=list)
    year: List[Union[int, str]] = Field(default_factory=list)
    ext_type: List[str] = Field(default_factory=list)
    class_: List[str] = Field(default_factory=list, alias="class")
    sub_class: List[str] = Field(default_factory=list)
    quarters: List[str] = Field(default_factory=list)
    months: List[int] = Field(default_factory=list)
    top_n: Optional[int] = None
    client_type: str = "broker"
    roles: List[str] = Field(default_factory=list)
    channel: Optional[str] = None
    generation: Optional[int] = None


class MetaOptionsResponse(BaseModel):
    options: dict
    row_count: int
