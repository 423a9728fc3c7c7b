"""Strategy pattern for script body encoding in bundles.

The platform stores script bodies base64 encoded. Bundles carry them
human-readable, either as an array of lines or as a JSON string of the
decoded text.
"""
from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Any, Protocol

from app.domain.errors import ValidationError


_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


def encode_base64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_base64(data: str) -> str:
    return base64.b64decode(data).decode("utf-8")


def encode_base64url(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8")


def is_base64_encoded(data: str) -> bool:
    """True if data is strict, padded base64 that decodes to UTF-8 text."""
    if not data or len(data) % 4 != 0 or not _BASE64_PATTERN.match(data):
        return False
    try:
        decode_base64(data)
    except (binascii.Error, UnicodeDecodeError):
        return False
    return True


def decode_script(encoded: str) -> str:
    """Decode a stored script body; ValidationError when it is not base64 text."""
    try:
        return decode_base64(encoded)
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValidationError(f"Script body is not base64 encoded text: {e}") from e


class ScriptEncodingStrategy(Protocol):
    """Protocol for script encoding strategies."""
    
    def to_bundle(self, encoded: str) -> Any:
        """Render a base64 script body for a bundle."""
        ...
    
    def get_name(self) -> str:
        """Return the strategy name."""
        ...


class StringArrayStrategy:
    """Decoded text split into lines, tabs expanded to four spaces."""
    
    def to_bundle(self, encoded: str) -> Any:
        return decode_script(encoded).replace("\t", "    ").split("\n")
    
    def get_name(self) -> str:
        return "array"


class JsonStringStrategy:
    """Decoded text as a single JSON-encoded string."""
    
    def to_bundle(self, encoded: str) -> Any:
        return json.dumps(decode_script(encoded))
    
    def get_name(self) -> str:
        return "json"


class ScriptEncodingStrategyFactory:
    """Factory to select the script encoding strategy for an export."""
    
    @classmethod
    def get_strategy(cls, multiline_scripts_as_arrays: bool) -> ScriptEncodingStrategy:
        if multiline_scripts_as_arrays:
            return StringArrayStrategy()
        return JsonStringStrategy()
    
    @classmethod
    def from_bundle(cls, script_body: Any) -> str:
        """Turn any bundle rendering of a script back into base64."""
        if isinstance(script_body, list):
            return encode_base64("\n".join(script_body))
        if isinstance(script_body, str) and is_base64_encoded(script_body):
            return script_body
        try:
            text = json.loads(script_body)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Unrecognized script body in bundle: {e}") from e
        if not isinstance(text, str):
            raise ValidationError("Unrecognized script body in bundle: expected a JSON string")
        return encode_base64(text)
