"""
Pydantic schemas for search options, results and vector-index payloads.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class SearchOptions(BaseModel):
    """Options for ranked search. Out-of-range values are clamped, not rejected."""

    top_k: Optional[int] = Field(default=None, description="Number of results to return")
    semantic_top_k: Optional[int] = Field(
        default=None, description="Nearest neighbours requested from the vector index"
    )
    lexical_limit: Optional[int] = Field(
        default=None, description="Row cap for the lexical scan when semantic search is empty"
    )
    diversity_soft_cap: Optional[int] = Field(
        default=None, description="Results per source before backfill"
    )


class SearchResult(BaseModel):
    """A single ranked passage."""

    source: str
    book: int
    entry: str
    text: str
    score: float = Field(..., description="Raw semantic score (0 for lexical-only hits)")
    weighted_score: float = Field(..., description="Blended score used for ranking")


class VectorMatch(BaseModel):
    """One raw match returned by a vector index."""

    id: str = ""
    score: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    @field_validator("score", mode="before")
    @classmethod
    def _missing_score(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _missing_metadata(cls, value: Any) -> Any:
        return {} if value is None else value


class VectorMatchMetadata(BaseModel):
    """
    Metadata stored with each vector: enough to rebuild (source, book, entry).

    Loosely typed payloads are coerced here; anything that cannot yield an
    integer book and a non-empty entry fails validation.
    """

    source: Optional[str] = None
    book: int
    entry: str

    @field_validator("source", mode="before")
    @classmethod
    def _blank_source(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value

    @field_validator("book", mode="before")
    @classmethod
    def _parse_book(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value.strip())
        return value

    @field_validator("entry", mode="before")
    @classmethod
    def _parse_entry(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("entry is required")
        entry = str(value).strip()
        if not entry:
            raise ValueError("entry is empty")
        return entry
