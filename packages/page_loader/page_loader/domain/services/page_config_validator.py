"""Domain service for page configuration validation.

This module provides the structural checks a fetched payload must pass before
it may replace a cached configuration, and the rules for resource ids used as
cache keys and URL path segments.
"""

from __future__ import annotations

from typing import Any

from page_loader.domain.exceptions import ConfigValidationError, InvalidResourceIdError

NO_CACHE = "no-cache"

MAX_RESOURCE_ID_LENGTH = 255

# Path separators and URL delimiters; whitespace and control characters are
# rejected separately
_INVALID_RESOURCE_ID_CHARS = frozenset("/\\?#")


class PageConfigValidator:
    """Validates page configuration payloads and resource ids."""

    def validate_resource_id(self, resource_id: str) -> None:
        """Validate resource ID format.

        Args:
            resource_id: The resource ID to validate

        Raises:
            InvalidResourceIdError: If the resource ID is invalid
        """
        if not isinstance(resource_id, str) or not resource_id.strip():
            raise InvalidResourceIdError(str(resource_id), "cannot be empty")

        if len(resource_id) > MAX_RESOURCE_ID_LENGTH:
            raise InvalidResourceIdError(
                resource_id, f"exceeds maximum length of {MAX_RESOURCE_ID_LENGTH} characters"
            )

        for char in resource_id:
            if char in _INVALID_RESOURCE_ID_CHARS or char.isspace() or not char.isprintable():
                raise InvalidResourceIdError(resource_id, f"contains invalid character {char!r}")

    def validate(self, resource_id: str, payload: Any) -> None:
        """Validate a page configuration payload.

        Args:
            resource_id: Resource the payload was fetched for
            payload: Decoded JSON body

        Raises:
            ConfigValidationError: If the payload is structurally invalid
        """
        if not isinstance(payload, dict):
            raise ConfigValidationError(resource_id, "payload must be a JSON object")

        config_id = payload.get("id")
        if not config_id or config_id != resource_id:
            raise ConfigValidationError(
                resource_id,
                f"id mismatch (expected: {resource_id}, got: {config_id})",
                field="id",
            )

        if not payload.get("version"):
            raise ConfigValidationError(resource_id, "missing version", field="version")

        if not isinstance(payload.get("layout"), dict):
            raise ConfigValidationError(resource_id, "missing layout", field="layout")

        widgets = payload.get("widgets")
        if not isinstance(widgets, list):
            raise ConfigValidationError(
                resource_id, "widgets must be an array", field="widgets"
            )
        for index, widget in enumerate(widgets):
            self._validate_widget(resource_id, widget, f"widgets[{index}]")

        metadata = payload.get("metadata")
        if metadata is not None:
            if not isinstance(metadata, dict):
                raise ConfigValidationError(
                    resource_id, "metadata must be an object", field="metadata"
                )
            self._validate_cache_policy(resource_id, metadata.get("cachePolicy"))

    def cache_policy(self, payload: dict[str, Any]) -> float | str | None:
        """Get the page's own cache policy.

        Returns:
            TTL in seconds, ``NO_CACHE``, or None when the page does not set one
        """
        metadata = payload.get("metadata")
        if not isinstance(metadata, dict):
            return None
        policy = metadata.get("cachePolicy")
        if policy == NO_CACHE:
            return NO_CACHE
        if isinstance(policy, int | float) and not isinstance(policy, bool):
            return float(policy)
        return None

    def _validate_widget(self, resource_id: str, widget: Any, path: str) -> None:
        if not isinstance(widget, dict):
            raise ConfigValidationError(resource_id, f"{path} must be an object", field=path)
        for key in ("id", "type"):
            value = widget.get(key)
            if not isinstance(value, str) or not value:
                raise ConfigValidationError(
                    resource_id, f"{path}.{key} is required", field=f"{path}.{key}"
                )
        children = widget.get("children")
        if children is not None:
            if not isinstance(children, list):
                raise ConfigValidationError(
                    resource_id, f"{path}.children must be an array", field=f"{path}.children"
                )
            for index, child in enumerate(children):
                self._validate_widget(resource_id, child, f"{path}.children[{index}]")

    def _validate_cache_policy(self, resource_id: str, policy: Any) -> None:
        if policy is None or policy == NO_CACHE:
            return
        if isinstance(policy, bool) or not isinstance(policy, int | float) or policy <= 0:
            raise ConfigValidationError(
                resource_id,
                "metadata.cachePolicy must be a positive number of seconds or 'no-cache'",
                field="metadata.cachePolicy",
            )
