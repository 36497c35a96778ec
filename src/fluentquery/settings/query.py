from pydantic import Field

from .base import FluentQueryBaseSettings
from fluentquery.constants import DEFAULT_CHUNK_SIZE, FetchShape


class QuerySettings(FluentQueryBaseSettings):

    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        ge=1,
        description="Rows per INSERT statement when batch inserting or upserting"
    )
    per_page: int = Field(
        default=20,
        ge=1,
        description="Default page size for simple_paginate"
    )
    page_name: str = Field(
        default="page",
        min_length=1,
        description="Query string parameter that carries the current page number"
    )
    fetch_shape: FetchShape = Field(
        default=FetchShape.OBJECT,
        description="Default row shape: 'object' (attribute access) or 'row' (plain dicts)"
    )
    max_logged_statement_length: int = Field(
        default=500,
        ge=50,
        description="Statements longer than this are truncated in logs and spans"
    )
