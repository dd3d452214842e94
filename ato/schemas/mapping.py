from __future__ import annotations

from datetime import datetime

from pydantic import Field

from ato.schemas.common import APIModel


class Mapping(APIModel):
    id: str
    main_component_id: str
    main_component_name: str | None = None
    test_component_id: str
    test_component_name: str | None = None
    is_deployed: bool | None = None
    is_packaged: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreateMappingRequest(APIModel):
    main_component_id: str = Field(min_length=1)
    main_component_name: str | None = None
    test_component_id: str = Field(min_length=1)
    test_component_name: str | None = None
    is_deployed: bool | None = None
    is_packaged: bool | None = None


__all__ = ["CreateMappingRequest", "Mapping"]
