# Where: conformance/runner/tests/test_discovery.py
# What: Unit tests for test declaration, discovery and plan building.
# Why: The plan decides which cases run, under which names and in which order.
from __future__ import annotations

import sys
from enum import Enum

import pytest

from conformance.runner import discovery
from conformance.runner.discovery import build_plan, collect_classes, discover
from conformance.runner.models import ServiceSpec


class Mode(str, Enum):
    FAST = "fast"
    SLOW = "slow"


def _configure(builder):
    builder.with_service_spec(ServiceSpec.builder("a").with_services("Counter"))


@discovery.tag("lazy-state")
@discovery.deployment(_configure)
class Sample:
    calls: list = []

    @discovery.test
    def plain(self, ctx):
        self.calls.append(("plain", ctx))

    @discovery.tag("slow")
    @discovery.test(concurrent=True, timeout=5.0)
    def tagged(self, ctx):
        self.calls.append(("tagged", ctx))

    @discovery.test(parameters=[Mode.FAST, Mode.SLOW])
    def modes(self, ctx, mode):
        self.calls.append(("modes", mode))

    @discovery.test(name="handler {0}", parameters=["x"])
    def named(self, ctx, value):
        self.calls.append(("named", value))

    def helper(self):
        return None


class NotDeployed:
    @discovery.test
    def ignored(self, ctx):
        return None


def _sample_spec():
    specs = [spec for spec in collect_classes(sys.modules[__name__]) if spec.cls is Sample]
    assert len(specs) == 1
    return specs[0]


def test_collects_only_deployment_classes():
    names = [spec.name for spec in collect_classes(sys.modules[__name__])]
    assert names == ["Sample"]


def test_methods_keep_definition_order_and_tags():
    spec = _sample_spec()

    assert [method.name for method in spec.methods] == ["plain", "tagged", "modes", "named"]
    assert spec.tags == frozenset({"lazy-state"})
    assert spec.methods[1].tags == frozenset({"slow"})
    assert spec.methods[1].options.concurrent is True
    assert spec.methods[1].options.timeout == 5.0


def test_parameterized_cases_get_labels_and_display_names():
    cases = _sample_spec().cases()

    assert [case.test_id.unique_id for case in cases] == [
        "Sample#plain",
        "Sample#tagged",
        "Sample#modes[fast]",
        "Sample#modes[slow]",
        "Sample#named[x]",
    ]
    assert cases[2].test_id.display_name == "modes[fast]"
    assert cases[4].test_id.display_name == "handler x"
    assert cases[1].tags == frozenset({"lazy-state", "slow"})


def test_case_run_uses_fresh_instance_and_passes_parameter(monkeypatch):
    monkeypatch.setattr(Sample, "calls", [])
    cases = _sample_spec().cases()

    cases[0].run("ctx")
    cases[3].run("ctx")

    assert Sample.calls == [("plain", "ctx"), ("modes", Mode.SLOW)]


def test_build_plan_filters_by_tags_and_names():
    spec = _sample_spec()

    assert build_plan([spec], "!lazy-state") == []
    slow = build_plan([spec], "slow")
    assert [case.test_id.method_name for case in slow[0].cases] == ["tagged"]
    named = build_plan([spec], None, ["Sample#modes"])
    assert [case.test_id.parameter for case in named[0].cases] == ["fast", "slow"]
    assert len(build_plan([spec], "", ["Sample"])[0].cases) == 5
    assert build_plan([spec], "", ["Other"]) == []


def test_discover_finds_bundled_scenarios():
    names = {spec.name for spec in discover()}

    assert {"State", "IngressTest", "CancelInvocation", "UserErrors"} <= names


def test_discover_rejects_unknown_package():
    from conformance.runner.exceptions import HarnessError

    with pytest.raises(HarnessError):
        discover("conformance.does_not_exist")
