"""Pydantic schemas for user payloads and responses."""

from __future__ import annotations

import unicodedata
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from herit_auth.core.sanitize import clean_email


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if any(unicodedata.category(ch) == "Cc" for ch in value):
            raise ValueError("password_contains_control_chars")
        if not value.strip():
            raise ValueError("password_required")
        return value


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if any(unicodedata.category(ch) == "Cc" for ch in value):
            raise ValueError("password_contains_control_chars")
        if not value.strip():
            raise ValueError("password_required")
        return value


class UserOut(BaseModel):
    id: UUID
    email: EmailStr

    model_config = ConfigDict(from_attributes=True)
