"""
Response models for the Turso Platform API.

Only the fields the resource gateways consume are declared; anything else
in a response body is ignored.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Database(_ApiModel):
    """A database as returned by the create and get endpoints."""

    name: str = Field(alias="Name")
    db_id: Optional[str] = Field(default=None, alias="DbId")
    hostname: Optional[str] = Field(default=None, alias="Hostname")
    group: Optional[str] = None
    is_schema: Optional[bool] = None
    schema_name: Optional[str] = Field(default=None, alias="schema")

    @field_validator("schema_name", mode="before")
    @classmethod
    def empty_schema_is_none(cls, v):
        return v or None


class DatabaseConfiguration(_ApiModel):
    """Database configuration flags and limits."""

    size_limit: Optional[str] = None
    allow_attach: Optional[bool] = None
    block_reads: Optional[bool] = None
    block_writes: Optional[bool] = None
    delete_protection: Optional[bool] = None

    @field_validator("size_limit", mode="before")
    @classmethod
    def size_limit_as_string(cls, v):
        if v is None or v == "":
            return None
        return str(v)


class DatabaseToken(_ApiModel):
    """A freshly issued database auth token."""

    jwt: str


class ApiToken(_ApiModel):
    """A platform API token. ``token`` is only present right after creation."""

    name: str
    id: str
    token: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        return str(v)


class ApiTokenList(_ApiModel):
    tokens: List[ApiToken] = Field(default_factory=list)


class Organization(_ApiModel):
    name: str
    slug: str
    type: str


class DatabaseInstance(_ApiModel):
    uuid: str
    name: str
    type: str
    region: str
    hostname: str

    @field_validator("type")
    @classmethod
    def known_instance_type(cls, v):
        if v not in ("primary", "replica"):
            raise ValueError(f"Instance type must be 'primary' or 'replica', got {v!r}")
        return v
