"""
Request bodies accepted by the registration routes.

The public form posts camelCase keys (fullName, jobTitle, ...) while the
admin dashboard posts snake_case keys; both are accepted.
"""

import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

OPTIONAL_TEXT_FIELDS = (
    "organization",
    "job_title",
    "street_address",
    "city",
    "country",
    "heard_about_us",
)


class RegistrationIn(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    full_name: str = Field(min_length=1, max_length=200)
    email: str = Field(max_length=254)
    phone: str = Field(min_length=1, max_length=50)
    organization: Optional[str] = Field(default=None, max_length=200)
    job_title: Optional[str] = Field(default=None, max_length=200)
    street_address: Optional[str] = Field(default=None, max_length=300)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    heard_about_us: Optional[str] = Field(default=None, max_length=200)
    future_interests: List[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("invalid email address")
        return v

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("future_interests", mode="before")
    @classmethod
    def interests_list(cls, v: Any) -> Any:
        # Anything that is not a list is treated as "no interests"
        if not isinstance(v, list):
            return []
        return [str(item).strip() for item in v if str(item).strip()]

    def column_values(self) -> tuple:
        return (
            self.full_name,
            self.email,
            self.phone,
            self.organization,
            self.job_title,
            self.street_address,
            self.city,
            self.country,
            self.heard_about_us,
            self.future_interests,
        )


class VerifyEmailRequest(BaseModel):
    # Format is checked by tokens.validate_token_format
    token: Any = None
