"""Helpers shared by the Postman transformers."""

import re
from typing import Any

from arc_data.transformers.base import (
    add_project_reference,
    add_request_reference,
    generate_request_id,
    now_millis,
    to_millis,
)

POSTMAN_VARIABLE_RE = re.compile(r"\{\{(.*?)\}\}")

# Postman dynamic variables with an equivalent function
DYNAMIC_VARIABLES = {
    "$randomInt": "random()",
    "$guid": "uuid()",
    "$timestamp": "now()",
}


def _replace_variable(match: re.Match) -> str:
    name = match.group(1)
    return "${" + DYNAMIC_VARIABLES.get(name, name) + "}"


def ensure_variables_syntax(value: Any) -> Any:
    """Rewrite `{{name}}` variables as `${name}`. Non-strings are returned as is."""
    if not isinstance(value, str) or "{{" not in value:
        return value
    return POSTMAN_VARIABLE_RE.sub(_replace_variable, value)


def ensure_vars_recursively(value: Any) -> Any:
    """Copy of `value` with every nested string rewritten by ensure_variables_syntax."""
    if isinstance(value, list):
        return [ensure_vars_recursively(item) for item in value]
    if isinstance(value, dict):
        return {key: ensure_vars_recursively(item) for key, item in value.items()}
    return ensure_variables_syntax(value)


def param_value(value: Any) -> str:
    """Trimmed string form of a body parameter name or value."""
    if value is None or value == "":
        return ""
    return str(value).strip()


def multipart_part(data: dict[str, Any], enabled: bool) -> dict[str, Any]:
    """Multipart form part. File parts keep their name only."""
    is_file = data.get("type") == "file"
    return {
        "enabled": enabled,
        "name": data.get("key"),
        "isFile": is_file,
        "value": "" if is_file else data.get("value"),
    }


def compute_body_v1(item: dict[str, Any]) -> tuple[str, list[dict[str, Any]] | None]:
    """
    Body of a v1 (and backup) request.

    Returns:
        Tuple of (payload, multipart parts or None).
    """
    data = item.get("data")
    if isinstance(data, str):
        return ensure_variables_syntax(data), None
    if not isinstance(data, list) or not data:
        return "", None
    data = ensure_vars_recursively(data)
    mode = item.get("dataMode")
    if mode == "params":
        return "", [multipart_part(part, part.get("enabled", True)) for part in data]
    if mode == "urlencoded":
        return (
            "&".join(
                f"{param_value(part.get('key'))}={param_value(part.get('value'))}"
                for part in data
            ),
            None,
        )
    return "", None


def ordered_folders(
    folders: list[dict[str, Any]] | None, order_ids: list[str] | None
) -> list[dict[str, Any]]:
    """Folders in the order given by `order_ids`. Unknown ids are ignored."""
    if not folders:
        return []
    if not order_ids:
        return list(folders)
    by_id = {folder.get("id"): folder for folder in folders}
    return [by_id[folder_id] for folder_id in order_ids if folder_id in by_id]


def requests_in_order(collection: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Flat list of a v1 collection's requests in display order.

    Collection level requests come first, then each folder's requests. A
    folder's `folders_order` lists sub-folders, which are visited after the
    folder's own requests. Ids without a matching request are dropped.
    """
    folders = collection.get("folders") or []
    folders_by_id = {folder.get("id"): folder for folder in folders}
    ordered_ids: list[str] = list(collection.get("order") or [])

    visited: set[Any] = set()

    def visit(folder: dict[str, Any]) -> None:
        if folder.get("id") in visited:
            return
        visited.add(folder.get("id"))
        ordered_ids.extend(folder.get("order") or [])
        for sub_id in folder.get("folders_order") or []:
            sub_folder = folders_by_id.get(sub_id)
            if sub_folder is not None:
                visit(sub_folder)

    for folder in ordered_folders(folders, collection.get("folders_order")):
        visit(folder)

    requests_by_id: dict[Any, dict[str, Any]] = {}
    for request in collection.get("requests") or []:
        requests_by_id.setdefault(request.get("id"), request)
    result = []
    seen: set[Any] = set()
    for request_id in ordered_ids:
        if request_id in seen or request_id not in requests_by_id:
            continue
        seen.add(request_id)
        result.append(requests_by_id[request_id])
    return result


def v1_request_to_arc(item: dict[str, Any], project: dict[str, Any] | None) -> dict[str, Any]:
    """Saved request from a v1 or backup request, linked to its project."""
    payload, multipart = compute_body_v1(item)
    created = to_millis(item.get("time"))
    result: dict[str, Any] = {
        "kind": "ARC#RequestData",
        "created": created if created is not None else now_millis(),
        "updated": now_millis(),
        "headers": ensure_variables_syntax(item.get("headers") or ""),
        "method": ensure_variables_syntax(item.get("method") or "GET"),
        "name": item.get("name") or "unnamed",
        "payload": payload,
        "type": "saved",
        "url": ensure_variables_syntax(item.get("url") or "http://"),
    }
    project_key = project.get("key") if project else None
    result["key"] = generate_request_id(result, project_key)
    if project is not None:
        add_project_reference(result, project_key)
        add_request_reference(project, result["key"])
    if item.get("description"):
        result["description"] = item["description"]
    if multipart:
        result["multipart"] = multipart
    return result
