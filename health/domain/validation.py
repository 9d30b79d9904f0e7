"""Input validation for core operations.

Wraps pydantic parsing so every failure surfaces as the gateway's
ValidationError (422, problem-details violations) before any
upstream or store call is made.
"""

from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import ValidationError, violations_from_errors

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_input(model: type[ModelT], data: Any) -> ModelT:
    """Validate raw input against `model`.

    Raises:
        ValidationError: with one violation per failing field.
    """
    if not isinstance(data, dict):
        raise ValidationError(
            [{"field": "(root)", "message": "Input should be an object", "constraint": "dict_type"}]
        )
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(violations_from_errors(exc.errors())) from exc
