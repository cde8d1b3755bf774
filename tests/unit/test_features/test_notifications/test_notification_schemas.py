"""Unit tests for notification schemas and property normalization."""

from __future__ import annotations

from uuid import UUID

import pytest
from pydantic import ValidationError

from notification_service.features.notifications.schemas import (
    CreateNotificationEvent,
    CreateNotificationRequest,
    DeliveryStateCounts,
    normalize_properties,
)


@pytest.mark.unit
class TestNormalizeProperties:
    """Tests for normalize_properties."""

    def test_none_is_empty(self):
        assert normalize_properties(None) == {}

    def test_mapping_is_copied(self):
        source = {"MyProperty": "123456"}
        result = normalize_properties(source)

        assert result == source
        assert result is not source

    def test_pairs_keep_order(self):
        result = normalize_properties([("b", 1), ["a", [1, 2]]])

        assert list(result) == ["b", "a"]
        assert result["a"] == [1, 2]

    def test_tuples_come_back_as_lists(self):
        assert normalize_properties({"coords": (1, 2)}) == {"coords": [1, 2]}

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ([("k", 1), ("k", 2)], "duplicate property key"),
            ({1: "x"}, "keys must be strings"),
            ([("only-key",)], r"properties\[0\] must be a \(key, value\) pair"),
            ("k=v", "mapping or a sequence"),
            ({"n": float("inf")}, "JSON serializable"),
            ({"obj": object()}, "JSON serializable"),
        ],
    )
    def test_invalid_values_raise(self, value, message):
        with pytest.raises(ValueError, match=message):
            normalize_properties(value)


@pytest.mark.unit
class TestCreateNotificationRequest:
    """Tests for CreateNotificationRequest validation."""

    def test_defaults(self):
        request = CreateNotificationRequest(channel="sms")

        assert request.tenant_id is None
        assert request.recipient_ids == []
        assert request.text == ""
        assert request.properties == {}

    def test_uuid_recipients_are_stringified(self):
        recipient = UUID("01900000-0000-7000-8000-000000000001")

        request = CreateNotificationRequest(channel="sms", recipient_ids=[recipient, "u-2"])

        assert request.recipient_ids == [str(recipient), "u-2"]

    def test_duplicates_are_kept(self):
        request = CreateNotificationRequest(channel="sms", recipient_ids=["u-1", "u-1"])

        assert request.recipient_ids == ["u-1", "u-1"]

    @pytest.mark.parametrize("recipient_id", ["", "x" * 256])
    def test_recipient_id_length(self, recipient_id):
        with pytest.raises(ValidationError, match="recipient_ids"):
            CreateNotificationRequest(channel="sms", recipient_ids=[recipient_id])

    def test_unknown_fields_are_forbidden(self):
        with pytest.raises(ValidationError):
            CreateNotificationRequest(channel="sms", priority="high")

    def test_properties_are_normalized(self):
        with pytest.raises(ValidationError, match="duplicate property key"):
            CreateNotificationRequest(channel="sms", properties=[("k", 1), ("k", 2)])


@pytest.mark.unit
class TestCreateNotificationEvent:
    """Tests for CreateNotificationEvent parsing."""

    def test_properties_are_passed_through_unvalidated(self):
        event = CreateNotificationEvent.model_validate(
            {"recipient_ids": ["u-1"], "properties": [["k", 1], ["k", 2]]}
        )

        assert event.properties == [["k", 1], ["k", 2]]
        assert event.channel is None

    def test_recipient_ids_must_be_a_list(self):
        with pytest.raises(ValidationError):
            CreateNotificationEvent.model_validate({"recipient_ids": 42})


@pytest.mark.unit
def test_delivery_state_counts():
    counts = DeliveryStateCounts(pending=1, succeeded=2, failed=1)

    assert counts.total == 4
    assert counts.completed is False
    assert DeliveryStateCounts(succeeded=1).completed is True
