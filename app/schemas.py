from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ChartType = Literal["bar", "line", "pie", "doughnut"]
CHART_TYPES: tuple[str, ...] = ("bar", "line", "pie", "doughnut")


class ApiModel(BaseModel):
    """Base model serialized with camelCase keys, accepting either spelling."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class ColumnSchema(ApiModel, frozen=True):
    """Column name and declared type, in catalog order."""

    name: str
    type: str


class TableQuery(ApiModel, frozen=True):
    """Paginated, sorted and filtered read of a single table."""

    table: str
    page: int = 1
    page_size: int = 10
    sort_column: str | None = None
    sort_direction: str = "asc"
    filters: dict[str, Any] = Field(default_factory=dict)


class QueryResult(ApiModel, frozen=True):
    """One page of rows plus the total matching row count."""

    columns: list[str]
    rows: list[dict[str, Any]]
    total: int
    page: int
    page_size: int


class TemplateField(ApiModel, frozen=True):
    """A logical slot in a template that must be bound to a real column."""

    id: str
    name: str
    description: str = ""
    required: bool = True


class InsightTemplate(ApiModel, frozen=True):
    """Stored chart template together with the fields it needs mapped."""

    id: int
    name: str
    description: str = ""
    type: str
    config: dict[str, Any] = Field(default_factory=dict)
    category: str = ""
    is_default: bool = False
    fields: list[TemplateField] = Field(default_factory=list)


class TemplateCreate(ApiModel, frozen=True):
    """Request body for POST /templates."""

    name: str = Field(min_length=1)
    description: str = ""
    type: ChartType
    config: dict[str, Any] = Field(default_factory=dict)
    category: str = ""
    is_default: bool = False


class ApplyTemplateRequest(ApiModel, frozen=True):
    """Request body for POST /templates/{id}/apply."""

    connection_id: int
    mappings: dict[str, str]


class ChartConfig(ApiModel, frozen=True):
    """Concrete chart definition bound to real table columns."""

    type: ChartType
    table: str
    x_field: str
    y_field: str
    group_by: str | None = None
    filters: dict[str, Any] | None = None
    options: dict[str, Any] | None = None


class ChartDataset(ApiModel, frozen=True):
    """One series of a chart, parallel to the chart labels."""

    label: str
    data: list[int | float]
    background_color: str | list[str]
    border_color: str | list[str]


class ChartData(ApiModel, frozen=True):
    """Labels plus one or more datasets ready for a chart renderer."""

    labels: list[str]
    datasets: list[ChartDataset]


class ChartPreviewRequest(ApiModel, frozen=True):
    """Request body for POST /charts/preview."""

    connection_id: int
    config: ChartConfig


class Connection(ApiModel, frozen=True):
    """A registered SQLite file."""

    id: int
    name: str
    path: str
    last_accessed: datetime | None = None
    size_bytes: int | None = None
    table_count: int | None = None
    is_valid: bool = True


class ConnectionCreate(ApiModel, frozen=True):
    """Request body for POST /connections."""

    name: str = Field(min_length=1)
    path: str = Field(min_length=1)


class Visualization(ApiModel, frozen=True):
    """A saved chart configuration."""

    id: int
    connection_id: int
    name: str
    type: str
    config: ChartConfig
    table_name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class VisualizationCreate(ApiModel, frozen=True):
    """Request body for POST /visualizations."""

    connection_id: int
    name: str = Field(min_length=1)
    config: ChartConfig


class VisualizationUpdate(ApiModel, frozen=True):
    """Request body for PUT /visualizations/{id}; omitted fields are kept."""

    name: str | None = Field(default=None, min_length=1)
    config: ChartConfig | None = None


class HealthResponse(ApiModel, frozen=True):
    """Health check response."""

    status: str
    connections_registered: int
    connections_open: int
