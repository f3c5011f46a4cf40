# JSON-schema checks for tool arguments
import copy
from typing import Any, Dict

from jsonschema import Draft7Validator

from ..errors import ToolArgumentError


def apply_defaults(schema: Dict[str, Any], instance: Any) -> Any:
    """Return a copy of ``instance`` with schema defaults filled in for missing properties."""
    if schema.get("type") != "object" or not isinstance(instance, dict):
        return instance
    out = copy.deepcopy(instance)
    for name, prop in (schema.get("properties") or {}).items():
        if name not in out and "default" in prop:
            out[name] = copy.deepcopy(prop["default"])
        if name in out:
            out[name] = apply_defaults(prop, out[name])
    return out


def _field_of(error) -> str:
    path = [str(p) for p in error.absolute_path]
    if error.validator == "required":
        # message is "'<name>' is a required property"
        missing = error.message.split("'")[1] if error.message.count("'") >= 2 else ""
        path.append(missing)
    return ".".join(p for p in path if p)


def validate_arguments(schema: Dict[str, Any], params: Any) -> Dict[str, Any]:
    """Fill defaults and validate. Raises ToolArgumentError naming the first bad field."""
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ToolArgumentError("", "arguments must be an object")
    params = apply_defaults(schema, params)
    errors = sorted(Draft7Validator(schema).iter_errors(params), key=lambda e: [str(p) for p in e.absolute_path])
    if errors:
        first = errors[0]
        raise ToolArgumentError(_field_of(first), first.message)
    return params
