# Where: conformance/runner/tests/test_config.py
# What: Unit tests for settings, the config registry and suite presets.
# Why: Suite selection and env layering decide what every class deploys.
from __future__ import annotations

import pytest

from conformance.runner import config as config_module
from conformance.runner.config import (
    GlobalConfig,
    get_global_config,
    load_suites,
    register_global_config,
    select_suites,
)
from conformance.runner.exceptions import HarnessError


def test_settings_read_prefixed_env(monkeypatch):
    monkeypatch.setenv("SDK_TEST_SERVICE_CONTAINER_IMAGE", "services:latest")
    monkeypatch.setenv("SDK_TEST_IMAGE_PULL_POLICY", "never")
    monkeypatch.setenv("SDK_TEST_ADDITIONAL_RUNTIME_ENVS", '{"RESTATE_A": "1"}')

    config = GlobalConfig()

    assert config.SERVICE_CONTAINER_IMAGE == "services:latest"
    assert config.IMAGE_PULL_POLICY == "never"
    assert config.ADDITIONAL_RUNTIME_ENVS == {"RESTATE_A": "1"}


def test_copy_with_leaves_original_untouched():
    base = GlobalConfig(SERVICE_CONTAINER_IMAGE="svc")
    derived = base.copy_with(RETAIN_AFTER_END=True)

    assert base.RETAIN_AFTER_END is False
    assert derived.RETAIN_AFTER_END is True
    assert derived.SERVICE_CONTAINER_IMAGE == "svc"


def test_retained_runs_have_no_timeouts():
    config = GlobalConfig(SUITE_TIMEOUT=60.0, LIFECYCLE_TIMEOUT=30.0)

    assert config.lifecycle_timeout() == 30.0
    assert config.suite_timeout() == 60.0
    retained = config.copy_with(RETAIN_AFTER_END=True)
    assert retained.lifecycle_timeout() is None
    assert retained.suite_timeout() is None


def test_registry_requires_registration(monkeypatch):
    monkeypatch.setattr(config_module, "_global_config", None)
    with pytest.raises(HarnessError):
        get_global_config()

    config = GlobalConfig()
    register_global_config(config)
    assert get_global_config() is config


def test_bundled_suites():
    suites = load_suites()

    assert list(suites) == ["default", "alwaysSuspending", "singleThreadSinglePartition", "lazyState"]
    assert suites["default"].include_tags == "none() | always-suspending"
    assert suites["lazyState"].additional_envs == {
        "RESTATE_WORKER__INVOKER__DISABLE_EAGER_STATE": "true"
    }


def test_load_suites_validates_shape(tmp_path):
    path = tmp_path / "suites.yaml"
    path.write_text("suites:\n  broken:\n    env: [1, 2]\n", encoding="utf-8")

    with pytest.raises(HarnessError):
        load_suites(path)
    with pytest.raises(HarnessError):
        load_suites(tmp_path / "missing.yaml")


def test_select_suites_accepts_comma_lists():
    suites = load_suites()

    assert select_suites(suites, None) == list(suites.values())
    selected = select_suites(suites, ["lazyState,default", "lazyState"])
    assert [suite.name for suite in selected] == ["lazyState", "default"]
    with pytest.raises(HarnessError, match="Unknown test suite"):
        select_suites(suites, ["nope"])

