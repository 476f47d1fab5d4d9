"""
Form data codec: lossless conversion between a submitted field set and a
JSON-safe structure ("smart form JSON").

Each field becomes one tagged entry:

    {"type": "STRING", "value": "hello"}
    {"type": "BLOB", "value": "<base64>", "metadata": {"type": "image/png",
                                                      "filename": "a.png"}}

Field names are unique: when a submission repeats a name, the last value
wins. decode_form(encode_form(f)) == f for any mix of text and binary
values, including empty ones and arbitrary byte content.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from starlette.datastructures import FormData, UploadFile

from errors import InvalidFormFieldError

STRING_MARKER = "STRING"
BLOB_MARKER = "BLOB"

DEFAULT_BLOB_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class FormBlob:
    """A binary field value held fully in memory."""

    data: bytes
    content_type: str = DEFAULT_BLOB_TYPE
    filename: Optional[str] = None


FieldValue = Union[str, FormBlob]
FormFields = dict[str, FieldValue]


def encode_field(value: FieldValue) -> dict[str, Any]:
    if isinstance(value, str):
        return {"type": STRING_MARKER, "value": value}
    if isinstance(value, FormBlob):
        metadata: dict[str, Any] = {"type": value.content_type}
        if value.filename is not None:
            metadata["filename"] = value.filename
        return {
            "type": BLOB_MARKER,
            "value": base64.b64encode(value.data).decode("ascii"),
            "metadata": metadata,
        }
    raise TypeError(f"unsupported form value type: {type(value).__name__}")


def decode_field(name: str, entry: Any) -> FieldValue:
    if not isinstance(entry, Mapping):
        raise InvalidFormFieldError(name, "entry is not an object")

    marker = entry.get("type")
    value = entry.get("value")

    if marker == STRING_MARKER:
        if not isinstance(value, str):
            raise InvalidFormFieldError(name, "string value missing")
        return value

    if marker == BLOB_MARKER:
        if not isinstance(value, str):
            raise InvalidFormFieldError(name, "blob value missing")
        try:
            data = base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError):
            raise InvalidFormFieldError(name, "blob value is not base64")
        metadata = entry.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise InvalidFormFieldError(name, "blob metadata is not an object")
        content_type = metadata.get("type")
        if content_type is None:
            content_type = DEFAULT_BLOB_TYPE
        elif not isinstance(content_type, str):
            raise InvalidFormFieldError(name, "blob content type is not a string")
        filename = metadata.get("filename")
        if filename is not None and not isinstance(filename, str):
            raise InvalidFormFieldError(name, "blob filename is not a string")
        return FormBlob(data=data, content_type=content_type, filename=filename)

    raise InvalidFormFieldError(name)


def encode_form(fields: Mapping[str, FieldValue]) -> dict[str, dict[str, Any]]:
    """Convert a field set into smart form JSON."""
    return {name: encode_field(value) for name, value in fields.items()}


def decode_form(smart_json: Any) -> FormFields:
    """Rebuild a field set from smart form JSON.

    Raises:
        InvalidFormFieldError: on a non-object payload, an unknown marker,
            or a blob whose value is not valid base64.
    """
    if not isinstance(smart_json, Mapping):
        raise InvalidFormFieldError("*", "payload is not an object")
    return {name: decode_field(name, entry) for name, entry in smart_json.items()}


def dumps_form(fields: Mapping[str, FieldValue]) -> str:
    """Serialize a field set to a compact JSON string."""
    return json.dumps(encode_form(fields), separators=(",", ":"))


def loads_form(raw: str) -> FormFields:
    """Inverse of dumps_form()."""
    try:
        smart_json = json.loads(raw)
    except ValueError:
        raise InvalidFormFieldError("*", "payload is not valid JSON")
    return decode_form(smart_json)


async def fields_from_form(form: FormData) -> FormFields:
    """Read a parsed request form into memory.

    Uploaded files are read fully and become FormBlob values; repeated
    names keep their last value.
    """
    fields: FormFields = {}
    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            data = await value.read()
            fields[name] = FormBlob(
                data=data,
                content_type=value.content_type or DEFAULT_BLOB_TYPE,
                filename=value.filename,
            )
        else:
            fields[name] = value
    return fields
