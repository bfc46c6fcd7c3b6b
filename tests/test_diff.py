from __future__ import annotations

from alarmbridge.diff import CONFIG_CHANGE, ROOT_PATH, is_config_topic, message_diff

TOPIC = "ialarm/sensors/1"


def test_identical_payloads_have_no_changes() -> None:
    payload = {"id": 1, "alarm": False, "nested": {"a": [1, 2]}}

    assert message_diff(payload, {"nested": {"a": [1, 2]}, "alarm": False, "id": 1}, TOPIC) == []


def test_changed_nested_value_reports_dotted_path() -> None:
    old = {"id": 1, "status": {"area": "armed_away"}}
    new = {"id": 1, "status": {"area": "disarmed"}}

    assert message_diff(old, new, TOPIC) == ["status.area"]


def test_added_and_removed_keys_are_reported() -> None:
    changes = message_diff({"a": 1, "b": 2}, {"b": 2, "c": 3}, TOPIC)

    assert changes == ["a", "c"]


def test_sequences_compared_element_wise() -> None:
    old = [{"id": 1, "alarm": False}, {"id": 2, "alarm": False}]
    new = [{"id": 1, "alarm": False}, {"id": 2, "alarm": True}]

    assert message_diff(old, new, "ialarm/sensors") == ["[1].alarm"]


def test_sequence_length_change_reports_container() -> None:
    assert message_diff([1, 2], [1, 2, 3], TOPIC) == [ROOT_PATH]
    assert message_diff({"zones": [1]}, {"zones": []}, TOPIC) == ["zones"]


def test_bool_and_int_are_distinct() -> None:
    assert message_diff({"alarm": True}, {"alarm": 1}, TOPIC) == ["alarm"]


def test_scalar_payloads() -> None:
    assert message_diff("online", "online", TOPIC) == []
    assert message_diff("online", "offline", TOPIC) == [ROOT_PATH]
    assert message_diff(None, {"id": 1}, TOPIC) == [ROOT_PATH]


def test_config_topics_always_change() -> None:
    topic = "homeassistant/binary_sensor/ialarm_1/fault/config"

    assert is_config_topic(topic)
    assert message_diff({"a": 1}, {"a": 1}, topic) == [CONFIG_CHANGE]
    assert not is_config_topic("ialarm/alarm/configStatus")


def test_same_object_is_unchanged_even_with_nan() -> None:
    payload = {"value": float("nan"), "items": [float("nan")]}

    assert message_diff(payload, payload, TOPIC) == []
