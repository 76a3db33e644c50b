from __future__ import annotations

import math

import pytest

from pose_tracker.tracking import Comparison, ConfigError, ConfigSnapshot, ConfigStore, FocusPoint, TrackingConfig


def test_tracking_config_defaults():
    config = TrackingConfig()
    assert config.num_angle_rules == 1
    assert config.angle_false_deg == 120.0
    assert config.angle_true_deg == 150.0
    assert config.cond_false is Comparison.LESS_THAN
    assert config.cond_true is Comparison.GREATER_THAN


@pytest.mark.parametrize("value", [-1.0, 360.5, math.inf, math.nan, "wide"])
def test_tracking_config_rejects_out_of_range_thresholds(value):
    with pytest.raises(ConfigError):
        TrackingConfig(angle_true_deg=value)


def test_tracking_config_rejects_unknown_operator():
    with pytest.raises(ConfigError):
        TrackingConfig(cond_true=">=")


def test_merged_ignores_unknown_keys_and_coerces_operators():
    config = TrackingConfig().merged({"angle_true_deg": 160, "cond_true": "<", "unexpected": 1})
    assert config.angle_true_deg == 160.0
    assert config.cond_true is Comparison.LESS_THAN


def test_as_dict_uses_host_field_names():
    assert TrackingConfig().as_dict() == {
        "num_angle": 1,
        "angleFalse": 120.0,
        "angleTrue": 150.0,
        "condFalse": "<",
        "condTrue": ">",
    }


def test_store_publishes_new_snapshot_without_touching_old_one():
    store = ConfigStore()
    before = store.snapshot()
    after = store.update({"angle_true_deg": 170.0}, focus_points=[FocusPoint(points=(23, 25, 27), name="knee")])

    assert before.config.angle_true_deg == 150.0
    assert before.focus_points is None
    assert after.config.angle_true_deg == 170.0
    assert after.focus_points == (FocusPoint(points=(23, 25, 27), name="knee"),)
    assert after.version == before.version + 1
    assert store.snapshot() is after


def test_store_keeps_focus_points_when_update_omits_them():
    store = ConfigStore(ConfigSnapshot(focus_points=(FocusPoint(points=(1, 2, 3)),)))
    updated = store.update({"angle_false_deg": 100.0})
    assert updated.focus_points == (FocusPoint(points=(1, 2, 3)),)


def test_store_replaces_focus_points_wholesale():
    store = ConfigStore(ConfigSnapshot(focus_points=(FocusPoint(points=(1, 2, 3)),)))
    updated = store.update(focus_points=[])
    assert updated.focus_points == ()
    assert updated.has_focus_points is False


def test_invalid_update_leaves_snapshot_in_place():
    store = ConfigStore()
    current = store.snapshot()
    with pytest.raises(ConfigError):
        store.update({"cond_true": "=="})
    assert store.snapshot() is current
