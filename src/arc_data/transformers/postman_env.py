"""Transformer for Postman environment (and globals) exports."""

import copy
from typing import Any

from arc_data.transformers.base import export_envelope, generate_variable_key
from arc_data.transformers.postman import ensure_variables_syntax


class PostmanEnvTransformer:
    """Converts an environment export into variables."""

    def __init__(self, data: dict[str, Any]):
        self.data = copy.deepcopy(data)

    def transform(self) -> dict[str, Any]:
        raw = copy.deepcopy(self.data)
        return export_envelope(
            "postman-environment",
            variables=self.transform_variables(raw.get("values"), raw.get("name")),
        )

    @staticmethod
    def transform_variables(values: Any, environment: str | None) -> list[dict[str, Any]]:
        if not isinstance(values, list) or not values:
            return []
        environment = environment or "default"
        result = []
        for item in values:
            name = item.get("key") or ""
            result.append(
                {
                    "kind": "ARC#VariableData",
                    "key": generate_variable_key(environment, name),
                    "environment": environment,
                    "enabled": bool(item.get("enabled")),
                    "variable": name,
                    "value": ensure_variables_syntax(item.get("value")),
                }
            )
        return result
