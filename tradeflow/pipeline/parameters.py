#!filepath: tradeflow/pipeline/parameters.py
"""
Step parameter schema + validation.

Pipeline step configs store raw string parameters (as entered by a user).
Each StepDefinition declares a ParameterSchema; `validate` turns the raw
mapping into typed ValidatedParams through a pydantic model built from the
schema, or raises ParameterValidationError with one ParameterError per bad
key (pydantic collects every field error, never fail-fast).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, BeforeValidator, Field, ValidationError, create_model

from tradeflow.utils.errors import ParameterValidationError


# -------------------------
# parameter types
# -------------------------
@dataclass(frozen=True)
class StringParam:
    pass


@dataclass(frozen=True)
class IntParam:
    min: Optional[int] = None
    max: Optional[int] = None


@dataclass(frozen=True)
class DecimalParam:
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass(frozen=True)
class BoolParam:
    pass


@dataclass(frozen=True)
class ChoiceParam:
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class MultiChoiceParam:
    options: tuple[str, ...] = ()


ParamType = Union[StringParam, IntParam, DecimalParam, BoolParam, ChoiceParam, MultiChoiceParam]


@dataclass(frozen=True)
class ParameterDef:
    key: str
    name: str
    type: ParamType
    description: str = ""
    required: bool = False
    default: Any = None
    group: Optional[str] = None


@dataclass(frozen=True)
class ParameterSchema:
    parameters: tuple[ParameterDef, ...] = ()


@dataclass(frozen=True)
class ParameterError:
    key: str
    message: str


# -------------------------
# validated params
# -------------------------
@dataclass(frozen=True)
class ValidatedParams:
    values: Mapping[str, Any] = field(default_factory=dict)

    def try_get(self, key: str) -> Any:
        return self.values.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def get_int(self, key: str, default: int) -> int:
        v = self.values.get(key)
        return int(v) if v is not None else default

    def get_decimal(self, key: str, default: float) -> float:
        v = self.values.get(key)
        return float(v) if v is not None else default

    def get_string(self, key: str, default: str) -> str:
        v = self.values.get(key)
        return str(v) if v is not None else default

    def get_bool(self, key: str, default: bool) -> bool:
        v = self.values.get(key)
        return bool(v) if v is not None else default

    def get_list(self, key: str, default: Sequence[str]) -> list[str]:
        v = self.values.get(key)
        return list(v) if v is not None else list(default)


# -------------------------
# validation (pydantic model built per schema)
# -------------------------
def _bool_text(v: Any) -> bool:
    lowered = str(v).lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    raise ValueError(f"'{v}' is not a valid boolean (true/false)")


def _multi_choice(options: tuple[str, ...]):
    def pick(v: Any) -> list[str]:
        valid = [p.strip() for p in str(v).split(";") if p.strip() in options]
        if not valid:
            raise ValueError(f"none of '{v}' is in {list(options)}")
        return valid

    return pick


def _annotation(t: ParamType) -> Any:
    if isinstance(t, StringParam):
        return str
    if isinstance(t, IntParam):
        return Annotated[int, Field(ge=t.min, le=t.max)]
    if isinstance(t, DecimalParam):
        return Annotated[float, Field(ge=t.min, le=t.max, allow_inf_nan=False)]
    if isinstance(t, BoolParam):
        return Annotated[bool, BeforeValidator(_bool_text)]
    if isinstance(t, ChoiceParam):
        return Literal[t.options]
    if isinstance(t, MultiChoiceParam):
        return Annotated[list[str], BeforeValidator(_multi_choice(t.options))]
    raise TypeError(f"unsupported parameter type {t!r}")


def _field_name(i: int) -> str:
    # 参数 key 不一定是合法标识符，字段名固定，key 走 alias
    return f"p{i}"


def schema_model(schema: ParameterSchema) -> type[BaseModel]:
    """
    ParameterSchema -> pydantic model

      - 有缺省值      : 缺省值
      - required 无缺省: 必填
      - 其它          : Optional，缺失即 absent
    """
    fields: dict[str, Any] = {}
    for i, d in enumerate(schema.parameters):
        ann = _annotation(d.type)
        if d.default is not None:
            fields[_field_name(i)] = (ann, Field(d.default, alias=d.key))
        elif d.required:
            fields[_field_name(i)] = (ann, Field(..., alias=d.key))
        else:
            fields[_field_name(i)] = (Optional[ann], Field(None, alias=d.key))
    return create_model("StepParameters", **fields)


def _range_text(lo, hi) -> str:
    return f"[{'-inf' if lo is None else lo}, {'+inf' if hi is None else hi}]"


def _to_parameter_error(schema: ParameterSchema, err: Mapping[str, Any]) -> ParameterError:
    key = str(err["loc"][0])
    kind = err["type"]

    if kind == "missing":
        return ParameterError(key, "required parameter is missing")

    if kind in ("greater_than_equal", "less_than_equal"):
        t = next(d.type for d in schema.parameters if d.key == key)
        return ParameterError(key, f"{err['input']} is out of range {_range_text(t.min, t.max)}")

    if kind == "value_error":
        return ParameterError(key, str(err["ctx"]["error"]))

    return ParameterError(key, f"'{err['input']}': {err['msg']}")


def validate(schema: ParameterSchema, raw: Mapping[str, str]) -> ValidatedParams:
    if not schema.parameters:
        return ValidatedParams({})

    data = {
        d.key: raw[d.key] if isinstance(d.type, StringParam) else raw[d.key].strip()
        for d in schema.parameters
        if d.key in raw
    }

    try:
        model = schema_model(schema).model_validate(data)
    except ValidationError as e:
        raise ParameterValidationError(
            [_to_parameter_error(schema, err) for err in e.errors()]
        ) from e

    values = {
        d.key: getattr(model, _field_name(i))
        for i, d in enumerate(schema.parameters)
    }
    return ValidatedParams({k: v for k, v in values.items() if v is not None})
