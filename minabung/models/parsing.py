"""
Input parsing.

Caller input is validated by building the target model. Pydantic's
error is reduced to its first problem and re-raised as the domain
ValidationError, so callers only ever see MinabungError subclasses.
"""

from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from minabung.errors import ValidationError


def build_model(model: type[BaseModel], data: dict[str, Any]) -> Any:
    """
    Validate input into a model.

    Raises:
        ValidationError: With the first problem pydantic found
    """
    try:
        return model.model_validate(data)
    except ModelValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or model.__name__
        raise ValidationError(f"Invalid {field}: {first['msg']}")
