from __future__ import annotations

from pydantic import Field

from ato.schemas.common import APIModel


class DisplayCredential(APIModel):
    account_id: str = ""
    username: str = ""
    execution_instance_id: str = ""


class CredentialProfile(APIModel):
    profile_name: str
    credentials: DisplayCredential = Field(default_factory=DisplayCredential)


class AddCredentialRequest(APIModel):
    profile_name: str = Field(min_length=1)
    account_id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password_or_token: str = Field(min_length=1, repr=False)
    execution_instance_id: str = Field(min_length=1)


__all__ = ["AddCredentialRequest", "CredentialProfile", "DisplayCredential"]
