"""jitr_shared.schemas — Structural gates for events and external responses.

Every AWS IoT response and every verifier answer goes through `gate()`
right after the call that produced it. A gate either returns the validated
value or raises the caller-chosen error class with the validator's
diagnostic; it never fills in a missing required field.

Models keep the wire (camelCase) names as aliases and accept unknown keys,
so the original payload survives validation untouched.
"""

from __future__ import annotations

from typing import Any, List, Optional, Type, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from jitr_shared.errors import JitrError

T = TypeVar("T")

# arn:<partition>:iot:<region>:<account>:<resource-type>/<id>
ARN_PATTERN = r"^arn:[A-Za-z0-9-]+:iot:[A-Za-z0-9-]*:[0-9]*:[A-Za-z]+/\S+$"


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ---------------------------------------------------------------------------
# Boundary events
# ---------------------------------------------------------------------------


class CsrSubjects(_WireModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    common_name: str = Field("", alias="commonName")
    country_name: str = Field("", alias="countryName", pattern=r"^([A-Za-z]{2})?$")
    state_name: str = Field("", alias="stateName")
    locality_name: str = Field("", alias="localityName")
    organization_name: str = Field("", alias="organizationName")
    organization_unit_name: str = Field("", alias="organizationUnitName")

    @field_validator("*", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class RegistrationEvent(_WireModel):
    verifier_name: str = Field("", alias="verifierName")
    csr_subjects: CsrSubjects = Field(default_factory=CsrSubjects, alias="csrSubjects")

    @field_validator("verifier_name", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ActivationMessage(_WireModel):
    certificate_id: str = Field(alias="certificateId", min_length=1)


# ---------------------------------------------------------------------------
# AWS IoT responses
# ---------------------------------------------------------------------------


class RegistrationCodeSchema(_WireModel):
    registration_code: str = Field(alias="registrationCode", min_length=1)


class RegistrationSchema(_WireModel):
    certificate_id: str = Field(alias="certificateId", min_length=1)
    certificate_arn: str = Field(alias="certificateArn", pattern=ARN_PATTERN)


class DeviceCertificateDescriptionSchema(_WireModel):
    ca_certificate_id: str = Field(alias="caCertificateId", min_length=1)
    certificate_arn: str = Field(alias="certificateArn", pattern=ARN_PATTERN)


class CaCertificateDescriptionSchema(_WireModel):
    certificate_arn: str = Field(alias="certificateArn", pattern=ARN_PATTERN)


class Tag(_WireModel):
    key: str = Field(alias="Key")
    value: Optional[str] = Field(None, alias="Value")


TagListSchema: TypeAdapter[List[Tag]] = TypeAdapter(List[Tag])


class ThingSchema(_WireModel):
    thing_name: str = Field(alias="thingName", min_length=1)


class PolicySchema(_WireModel):
    policy_name: str = Field(alias="policyName", min_length=1)


# ---------------------------------------------------------------------------
# Verifier answers
# ---------------------------------------------------------------------------


class VerificationSchema(_WireModel):
    verified: StrictBool

    @field_validator("verified")
    @classmethod
    def must_be_true(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("verified must be true")
        return value


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into `<path>: <message>; ...`."""
    parts = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err.get("loc", ())) or "value"
        parts.append(f"{path}: {err.get('msg', 'invalid')}")
    return "; ".join(parts) or str(exc)


def gate(
    schema: Union[Type[T], TypeAdapter],
    value: Any,
    error_cls: Type[JitrError],
    context: str = "",
) -> T:
    """Validate `value` against `schema`, raising `error_cls` on failure.

    `context`, when given, prefixes the diagnostic carried by the error.
    """
    try:
        if isinstance(schema, TypeAdapter):
            return schema.validate_python(value)
        return schema.model_validate(value)
    except ValidationError as exc:
        detail = describe_validation_error(exc)
        raise error_cls(f"{context}: {detail}" if context else detail) from exc
