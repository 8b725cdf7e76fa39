import json
import re
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from reviewlens.core.errors import GenerationSchemaError

ModelT = TypeVar("ModelT", bound=BaseModel)


def strip_fences(content: str) -> str:
    stripped = content.strip()
    if stripped.startswith("```"):
        stripped = re.sub(r"^```[a-zA-Z0-9]*", "", stripped)
        stripped = re.sub(r"```$", "", stripped).strip()
    return stripped


def parse_payload(content: str, schema: Type[ModelT]) -> ModelT:
    """Validate a chat completion against ``schema``.

    Tolerates markdown fences and prose around a single JSON object. Anything
    that still fails validation raises ``GenerationSchemaError``.
    """

    if not content or not content.strip():
        raise GenerationSchemaError("Empty response from generative model")
    stripped = strip_fences(content)

    try:
        return schema.model_validate_json(stripped)
    except (ValidationError, json.JSONDecodeError) as exc:
        match = re.search(r"\{.*\}", stripped, re.S)
        if not match or match.group(0) == stripped:
            raise GenerationSchemaError(_describe(exc)) from exc
        try:
            return schema.model_validate_json(match.group(0))
        except (ValidationError, json.JSONDecodeError) as inner:
            raise GenerationSchemaError(_describe(inner)) from inner


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        return f"Invalid model output at {location or 'root'}: {first.get('msg', str(exc))}"
    return f"Invalid model output: {exc}"
