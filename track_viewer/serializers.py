"""
Serializers for the viewer API.
"""
from datetime import datetime
from typing import Any

from rest_framework import serializers


def _validate_iso_datetime(value: str) -> str:
    try:
        datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError as e:
        raise serializers.ValidationError(
            f"Expected ISO 8601 datetime, got invalid format: {e}"
        ) from e
    return value


class HistoryQuerySerializer(serializers.Serializer):
    """
    Query parameters of the history endpoint.

    Timestamps are validated but passed on to the recorder unmodified.
    Omitted fields keep the current selection.
    """

    start = serializers.CharField(required=False, help_text="Start date and time in UTC (ISO 8601)")
    end = serializers.CharField(required=False, help_text="End date and time in UTC (ISO 8601)")
    user = serializers.CharField(required=False, allow_blank=True, help_text="Only this user")
    device = serializers.CharField(required=False, allow_blank=True, help_text="Only this device of the user")

    def validate_start(self, value: str) -> str:
        return _validate_iso_datetime(value)

    def validate_end(self, value: str) -> str:
        return _validate_iso_datetime(value)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs.get('device') and not attrs.get('user'):
            raise serializers.ValidationError({'device': "device requires user"})
        return attrs
