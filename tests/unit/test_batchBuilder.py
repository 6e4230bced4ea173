"""
Unit tests for the batch builder.

Tests token partitioning at and around the provider limit, topic batches,
payload stringification, and the Android notification merge rules.
"""

import json
import math
import warnings
from datetime import timedelta

import pytest

from pushrelay.integrations.fcm.batchBuilder import (
    FCM_BATCH_LIMIT,
    build_android_config,
    build_batches,
    build_data,
)
from pushrelay.schemas.push import AndroidNotificationOverride, PushRequest


def _tokens(count: int) -> list[str]:
    return [f"tok-{i}" for i in range(count)]


# ---------------------------------------------------------------------------
# Partitioning
# ---------------------------------------------------------------------------


class TestPartitioning:
    """Batches must partition the recipient list exactly."""

    @pytest.mark.parametrize(
        "count,limit",
        [(1, 500), (499, 500), (500, 500), (501, 500), (1001, 500), (7, 3), (9, 3)],
    )
    def test_batches_partition_the_recipient_list(self, count, limit):
        tokens = _tokens(count)
        batches = list(build_batches(PushRequest(tokens=tokens), limit=limit))

        assert len(batches) == math.ceil(count / limit)
        assert all(len(b.tokens) <= limit for b in batches)
        assert [t for b in batches for t in b.tokens] == tokens

    def test_1200_recipients_make_three_batches(self):
        batches = list(build_batches(PushRequest(tokens=_tokens(1200))))

        assert [len(b) for b in batches] == [500, 500, 200]
        assert [b.offset for b in batches] == [0, 500, 1000]

    def test_last_batch_never_exceeds_limit(self):
        batches = list(build_batches(PushRequest(tokens=_tokens(FCM_BATCH_LIMIT + 1))))

        assert [len(b) for b in batches] == [FCM_BATCH_LIMIT, 1]
        assert batches[1].tokens == [f"tok-{FCM_BATCH_LIMIT}"]

    def test_zero_recipients_yield_no_batches(self):
        assert list(build_batches(PushRequest(tokens=[]))) == []

    def test_explicit_recipients_override_request_tokens(self):
        req = PushRequest(tokens=_tokens(10))

        batches = list(build_batches(req, ["tok-3", "tok-7"]))

        assert len(batches) == 1
        assert batches[0].tokens == ["tok-3", "tok-7"]

    def test_single_to_target_is_treated_as_one_recipient(self):
        batches = list(build_batches(PushRequest(to="device-abc")))

        assert len(batches) == 1
        assert batches[0].tokens == ["device-abc"]
        assert batches[0].is_topic is False

    def test_generator_is_not_restartable(self):
        batches = build_batches(PushRequest(tokens=_tokens(3)), limit=2)

        assert len(list(batches)) == 2
        assert list(batches) == []

    @pytest.mark.parametrize("limit", [0, -1, FCM_BATCH_LIMIT + 1])
    def test_limit_out_of_range_raises(self, limit):
        with pytest.raises(ValueError):
            list(build_batches(PushRequest(tokens=_tokens(3)), limit=limit))

    def test_shared_fields_are_shared_by_reference(self):
        req = PushRequest(tokens=_tokens(4), data={"job": 1}, title="Hi")

        first, second = build_batches(req, limit=2)

        assert first.android is second.android
        assert first.data is second.data


# ---------------------------------------------------------------------------
# Topic batches
# ---------------------------------------------------------------------------


class TestTopicBatches:

    def test_topic_produces_single_batch_without_tokens(self):
        batches = list(build_batches(PushRequest(to="/topics/news", message="hello")))

        assert len(batches) == 1
        assert batches[0].tokens == []
        assert batches[0].topic == "news"
        assert batches[0].condition is None
        assert batches[0].is_topic is True

    def test_condition_takes_precedence_over_topic(self):
        req = PushRequest(to="/topics/news", condition="'a' in topics || 'b' in topics")

        (batch,) = build_batches(req)

        assert batch.topic is None
        assert batch.condition == "'a' in topics || 'b' in topics"

    def test_topic_message_carries_payload(self):
        req = PushRequest(to="/topics/news", data={"k": "v"})

        (batch,) = build_batches(req)
        message = batch.to_message()

        assert message.topic == "news"
        assert message.data == {"k": "v"}


# ---------------------------------------------------------------------------
# Shared fields
# ---------------------------------------------------------------------------


class TestSharedFields:

    def test_data_values_are_stringified(self):
        req = PushRequest(data={"count": 3, "ratio": 0.5, "name": "x", "flag": True})

        assert build_data(req) == {"count": "3", "ratio": "0.5", "name": "x", "flag": "true"}

    def test_nested_data_values_are_json_encoded(self):
        req = PushRequest(data={"meta": {"id": 7, "tags": ["a"]}, "missing": None})

        data = build_data(req)

        assert json.loads(data["meta"]) == {"id": 7, "tags": ["a"]}
        assert data["missing"] == "null"

    def test_multicast_builds_without_deprecation_warnings(self):
        (batch,) = build_batches(PushRequest(tokens=_tokens(2), message="hi"))

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            message = batch.to_multicast()

        assert message.tokens == _tokens(2)

    def test_empty_data_is_omitted(self):
        assert build_data(PushRequest()) is None

    def test_priority_high_is_passed_through(self):
        assert build_android_config(PushRequest(priority="high")).priority == "high"

    def test_priority_normal_is_left_unset(self):
        assert build_android_config(PushRequest(priority="normal")).priority is None

    def test_ttl_seconds_become_timedelta(self):
        config = build_android_config(PushRequest(time_to_live=90))

        assert config.ttl == timedelta(seconds=90)

    def test_zero_ttl_is_left_unset(self):
        assert build_android_config(PushRequest(time_to_live=0)).ttl is None

    def test_collapse_key_is_copied(self):
        config = build_android_config(PushRequest(collapse_key="job-42"))

        assert config.collapse_key == "job-42"


class TestNotificationMerge:

    def test_no_notification_fields_leave_notification_unset(self):
        assert build_android_config(PushRequest(tokens=["a"])).notification is None

    def test_explicit_fields_build_notification(self):
        req = PushRequest(title="T", message="B", image="https://img", sound="ding")

        notification = build_android_config(req).notification

        assert notification.title == "T"
        assert notification.body == "B"
        assert notification.image == "https://img"
        assert notification.sound == "ding"

    def test_explicit_fields_win_over_override(self):
        override = AndroidNotificationOverride(title="old", body="old body", color="#ff0000")
        req = PushRequest(title="new", notification=override)

        notification = build_android_config(req).notification

        assert notification.title == "new"
        assert notification.body == "old body"
        assert notification.color == "#ff0000"

    def test_empty_override_still_marks_notification_set(self):
        req = PushRequest(notification=AndroidNotificationOverride())

        assert build_android_config(req).notification is not None

    def test_non_string_sound_is_ignored(self):
        req = PushRequest(sound={"critical": 1, "name": "alarm"})

        assert build_android_config(req).notification is None
