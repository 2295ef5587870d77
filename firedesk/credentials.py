"""Service-account credential loading."""

from __future__ import annotations

import json
from pathlib import Path

from .errors import CredentialReadError
from .models import ServiceAccountCredential


def load_service_account(path: str | Path) -> ServiceAccountCredential:
    """Read and parse a service-account key file.

    Every failure (missing file, permissions, invalid JSON, missing
    ``project_id``) is raised as :class:`CredentialReadError` chained to the
    underlying cause.
    """

    candidate = Path(path).expanduser()
    try:
        with candidate.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CredentialReadError(f"Failed to read service account '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise CredentialReadError(f"Failed to read service account '{path}': expected a JSON object")
    project_id = raw.get("project_id")
    if not isinstance(project_id, str) or not project_id:
        raise CredentialReadError(f"Failed to read service account '{path}': missing project_id")
    return ServiceAccountCredential(project_id=project_id, raw=raw)


__all__ = ["load_service_account"]
