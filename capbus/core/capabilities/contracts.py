"""
Input/output contracts for capabilities

A contract validates untyped raw arguments into a typed value and
projects itself to a JSON-Schema dict for manifests and tool definitions.

Two implementations ship with the bus:
- ModelContract: any pydantic-compatible type (BaseModel, dataclass,
  TypedDict, builtins) through pydantic.TypeAdapter
- JsonSchemaContract: a raw JSON-Schema dict checked with Draft7Validator

Custom contracts subclass Contract. ``validate`` may return an awaitable
when validation needs to suspend (e.g. a lookup); the bus awaits it.

Example:
    from pydantic import BaseModel
    from capbus.core.capabilities.contracts import as_contract

    class AddInput(BaseModel):
        a: float
        b: float

    contract = as_contract(AddInput)
    value = contract.validate({"a": 2, "b": 3})
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from jsonschema import Draft7Validator
from pydantic import TypeAdapter, ValidationError

from capbus.core.capabilities.exceptions import ContractViolation


class Contract(ABC):
    """Validation + schema projection for one side of a capability"""

    @abstractmethod
    def validate(self, raw: Any) -> Any:
        """
        Validate raw input

        Returns:
            The typed value (or an awaitable resolving to it)

        Raises:
            ContractViolation: with a diagnostic message
        """

    @abstractmethod
    def json_schema(self) -> Dict[str, Any]:
        """Serializable JSON-Schema representation"""


class ModelContract(Contract):
    """Contract backed by a pydantic TypeAdapter"""

    def __init__(self, type_: Any):
        self.type_ = type_
        self._adapter = TypeAdapter(type_)

    def validate(self, raw: Any) -> Any:
        try:
            return self._adapter.validate_python(raw)
        except ValidationError as e:
            raise ContractViolation(str(e)) from e

    def json_schema(self) -> Dict[str, Any]:
        return self._adapter.json_schema()

    def __repr__(self) -> str:
        return f"ModelContract({getattr(self.type_, '__name__', self.type_)!r})"


class JsonSchemaContract(Contract):
    """Contract backed by a JSON-Schema (draft 7) document"""

    def __init__(self, schema: Dict[str, Any]):
        Draft7Validator.check_schema(schema)
        self.schema = schema
        self._validator = Draft7Validator(schema)

    def validate(self, raw: Any) -> Any:
        errors = list(self._validator.iter_errors(raw))
        if not errors:
            return raw

        error_messages = []
        for error in errors:
            path = ".".join(str(p) for p in error.path) if error.path else "root"
            error_messages.append(f"{path}: {error.message}")
        raise ContractViolation("; ".join(error_messages))

    def json_schema(self) -> Dict[str, Any]:
        return dict(self.schema)

    def __repr__(self) -> str:
        return f"JsonSchemaContract(type={self.schema.get('type')!r})"


def as_contract(obj: Any) -> Contract:
    """
    Normalize a capability's input/output declaration into a Contract

    - Contract instances pass through
    - dicts are treated as JSON-Schema documents
    - anything else is handed to pydantic
    """
    if isinstance(obj, Contract):
        return obj
    if isinstance(obj, dict):
        return JsonSchemaContract(obj)
    return ModelContract(obj)


def to_json_schema(contract: Contract) -> Dict[str, Any]:
    """Default schema converter used by manifest generation"""
    return contract.json_schema()
