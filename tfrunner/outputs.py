"""Decode ``terraform output -json`` and ``terraform version -json`` payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import DecodeError
from .types import OutputValue, StringOutput, StructuredOutput


class OutputEntry(BaseModel):
    """One entry of the ``terraform output -json`` document."""

    sensitive: bool = Field(default=False, description="Marked sensitive in config")
    type: Any = Field(..., description="Terraform type expression")
    value: Any = Field(..., description="Output value")

    model_config = ConfigDict(extra="ignore")


class VersionDocument(BaseModel):
    """Subset of ``terraform version -json`` that callers rely on."""

    terraform_version: str

    model_config = ConfigDict(extra="ignore")


_OUTPUTS_ADAPTER: TypeAdapter[dict[str, OutputEntry]] = TypeAdapter(
    dict[str, OutputEntry]
)


def _is_empty(data: bytes | str | None) -> bool:
    if data is None:
        return True
    return not data.strip()


def parse_outputs(data: bytes | str | None) -> dict[str, OutputValue]:
    """Parse the output document, keeping the string/structured distinction."""

    if _is_empty(data):
        return {}
    try:
        entries = _OUTPUTS_ADAPTER.validate_json(data)
    except ValidationError as exc:
        raise DecodeError(
            f"unable to decode terraform output. Original error: {exc}"
        ) from exc

    values: dict[str, OutputValue] = {}
    for name, entry in entries.items():
        if entry.type == "string":
            if not isinstance(entry.value, str):
                raise DecodeError(
                    f"output {name!r} is declared as string but holds "
                    f"{type(entry.value).__name__}",
                    key=name,
                )
            values[name] = StringOutput(value=entry.value, sensitive=entry.sensitive)
        else:
            values[name] = StructuredOutput(
                value=entry.value, type_expr=entry.type, sensitive=entry.sensitive
            )
    return values


def decode_outputs(data: bytes | str | None) -> dict[str, str]:
    """Decode the output document into a string-per-key mapping.

    String outputs are returned verbatim; every other type is re-serialised as
    canonical JSON so a list, map, number or bool becomes its JSON text.
    """

    result: dict[str, str] = {}
    for name, value in parse_outputs(data).items():
        try:
            result[name] = value.render()
        except (TypeError, ValueError) as exc:
            raise DecodeError(
                f"unable to marshal variable value for variable {name}. "
                f"Original error: {exc}",
                key=name,
            ) from exc
    return result


def decode_version(data: bytes | str | None) -> str:
    """Return ``terraform_version`` from a ``terraform version -json`` payload."""

    if _is_empty(data):
        raise DecodeError("terraform version produced no output")
    try:
        document = VersionDocument.model_validate_json(data)
    except ValidationError as exc:
        raise DecodeError(
            f"unable to decode terraform version. Original error: {exc}"
        ) from exc
    return document.terraform_version
