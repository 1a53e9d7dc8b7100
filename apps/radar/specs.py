from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


class CacheableSpec(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    fetch_date: int = Field(default_factory=now_ms)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


class SourceSpec(CacheableSpec):
    abi: str = '{}'
    source_code_verified: bool = False
    contract_name: str = ''
    source_files: list[str] = Field(default_factory=list)
    start_block: int | None = None


class StateSpec(CacheableSpec):
    # method name -> JSON serialized value
    methods: dict[str, str] = Field(default_factory=dict)
    # method name -> address returned by that method
    interacts_with: dict[str, str] = Field(default_factory=dict)


class RbacRole(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    role_id: str
    role_name: str = ''
    admin: str = ''
    admin_of: list[str] = Field(default_factory=list)
    members: list[str] = Field(default_factory=list)


class RbacMembership(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    contract: str


class RbacSpec(CacheableSpec):
    roles: list[RbacRole] = Field(default_factory=list)
    membership: list[RbacMembership] = Field(default_factory=list)


class MultisigPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    owners: int
    threshold: int


class MultisigSpec(CacheableSpec):
    policy: MultisigPolicy
    version: str | None = None


class MultisigOwnersSpec(CacheableSpec):
    owners: list[str] = Field(default_factory=list)


class NearKeysSpec(CacheableSpec):
    # public key -> JSON serialized permission
    keys: dict[str, str] = Field(default_factory=dict)


class SignerSpec(CacheableSpec):
    last_signed: int


class Transaction(BaseModel):
    """Explorer-agnostic view of a single transaction."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    hash: str
    block_number: int | None = None
    timestamp: int | None = None
    signer: str = ''
    receiver: str = ''


def is_full_access_key(permission: str) -> bool:
    return permission == '"FullAccess"'
