"""Strict schema baselines with forbidden extras by default."""

from typing import Any, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from ..core.exceptions import ValidationException

M = TypeVar("M", bound=BaseModel)


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


def parse_request(model: Type[M], payload: Union[M, Mapping[str, Any]]) -> M:
    """
    Validate a raw payload into ``model``.

    Pydantic errors become ValidationException so service callers only
    deal with domain exceptions.
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationException(
            f"Invalid {model.__name__} payload",
            code="INVALID_REQUEST",
            details={"errors": errors},
        ) from exc
