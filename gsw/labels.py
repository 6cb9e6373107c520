from __future__ import annotations

from dataclasses import dataclass

# Boolean spellings accepted for the marker label.
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


class LabelError(ValueError):
    """A label is present but cannot be used."""


@dataclass(frozen=True)
class GatewayConfiguration:
    service_name: str
    upstream_name: str
    service_path: str


def label_keys(prefix: str) -> dict[str, str]:
    return {
        "service_name": f"{prefix}.service.name",
        "upstream_name": f"{prefix}.service.upstream-name",
        "service_path": f"{prefix}.service.path",
    }


def parse_bool(raw: str) -> bool:
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise LabelError(f"invalid boolean label value {raw!r}")


def is_service(labels: dict[str, str], prefix: str) -> bool:
    """Return whether the marker label opts the container into management.

    Raises LabelError when the marker is missing or not a boolean.
    """
    key = f"{prefix}.isService"
    if key not in labels:
        raise LabelError(f"label {key!r} missing")
    return parse_bool(labels[key].strip())


def validate_service_path(path: str) -> None:
    # Kong only accepts absolute prefixes (or "~" regexes) as route paths.
    if not (path.startswith("/") or path.startswith("~/")):
        raise LabelError(f"service path {path!r} must start with '/'")


def extract_config(labels: dict[str, str], prefix: str) -> GatewayConfiguration | None:
    """Build the gateway configuration from the container labels.

    Returns None when any of the three labels is missing or blank, so a
    container is either fully configured or not registered at all.
    """
    values: dict[str, str] = {}
    for field_name, key in label_keys(prefix).items():
        value = (labels.get(key) or "").strip()
        if not value:
            return None
        values[field_name] = value
    validate_service_path(values["service_path"])
    return GatewayConfiguration(**values)


def missing_labels(labels: dict[str, str], prefix: str) -> list[str]:
    return [key for key in label_keys(prefix).values() if not (labels.get(key) or "").strip()]
