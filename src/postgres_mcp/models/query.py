"""Query result models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QueryResult(BaseModel):
    """Normalized result of one executed statement.

    Rows are ordered column-name to value mappings; the column set is decided
    by the caller's SQL at runtime.
    """

    model_config = ConfigDict(frozen=True)

    rows: list[dict[str, Any]] | None = Field(None, description="Returned rows")
    rows_affected: int | None = Field(None, ge=0, description="Rows processed by the command")
    command: str | None = Field(None, description="SQL command verb, e.g. INSERT")
    execution_time_ms: float = Field(..., ge=0, description="Execution wall-clock time")

    @property
    def row_count(self) -> int:
        """Number of rows returned to the caller."""
        return len(self.rows) if self.rows is not None else 0
