# Where: conformance/runner/discovery.py
# What: Test declaration decorators, scenario discovery and plan building.
# Why: Scenario modules declare tests; the executor consumes a flat, filtered plan.
from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from dataclasses import dataclass, field
from enum import Enum
from types import ModuleType
from typing import Any, Callable, Iterable, Sequence

from conformance.runner.constants import SCENARIOS_PACKAGE
from conformance.runner.exceptions import HarnessError
from conformance.runner.models import DeploymentDescriptorBuilder
from conformance.runner.tags import parse_tag_expression

logger = logging.getLogger(__name__)

DEPLOYMENT_ATTR = "__conformance_deployment__"
TAGS_ATTR = "__conformance_tags__"
TEST_ATTR = "__conformance_test__"

Configure = Callable[[DeploymentDescriptorBuilder], Any]


@dataclass(frozen=True)
class TestOptions:
    name: str | None = None
    concurrent: bool = False
    timeout: float | None = None
    parameters: tuple[Any, ...] | None = None

    __test__ = False


def deployment(configure: Configure):
    """Mark a class as a test class whose deployment is built by `configure`."""

    def decorator(cls):
        setattr(cls, DEPLOYMENT_ATTR, configure)
        return cls

    return decorator


def tag(*names: str):
    def decorator(obj):
        existing = frozenset(getattr(obj, TAGS_ATTR, frozenset()))
        setattr(obj, TAGS_ATTR, existing | frozenset(names))
        return obj

    return decorator


def test(
    fn: Callable | None = None,
    *,
    name: str | None = None,
    concurrent: bool = False,
    timeout: float | None = None,
    parameters: Iterable[Any] | None = None,
):
    """
    Mark a method as a test case.

    Usable bare (`@test`) or with options. With `parameters` the method runs
    once per value, receiving it after the context; `{0}` in `name` is replaced
    by the parameter label.
    """
    options = TestOptions(
        name=name,
        concurrent=concurrent,
        timeout=timeout,
        parameters=tuple(parameters) if parameters is not None else None,
    )

    def decorator(func):
        setattr(func, TEST_ATTR, options)
        return func

    if fn is not None:
        return decorator(fn)
    return decorator


test.__test__ = False  # type: ignore[attr-defined]


@dataclass(frozen=True)
class TestId:
    class_name: str
    method_name: str
    display_name: str
    parameter: str | None = None

    __test__ = False

    @property
    def unique_id(self) -> str:
        base = f"{self.class_name}#{self.method_name}"
        if self.parameter is None:
            return base
        return f"{base}[{self.parameter}]"

    def __str__(self) -> str:
        return self.unique_id


@dataclass(frozen=True)
class TestMethodSpec:
    name: str
    options: TestOptions
    tags: frozenset[str] = frozenset()

    __test__ = False


@dataclass(frozen=True)
class TestCase:
    test_id: TestId
    tags: frozenset[str]
    concurrent: bool
    timeout: float | None
    run: Callable[[Any], Any] = field(compare=False, repr=False)

    __test__ = False


@dataclass(frozen=True)
class TestClassSpec:
    cls: type
    configure: Configure
    tags: frozenset[str]
    methods: tuple[TestMethodSpec, ...]

    __test__ = False

    @property
    def name(self) -> str:
        return self.cls.__name__

    def cases(self) -> list[TestCase]:
        cases: list[TestCase] = []
        for method in self.methods:
            effective_tags = self.tags | method.tags
            if method.options.parameters is None:
                cases.append(self._case(method, effective_tags, None, ()))
                continue
            for parameter in method.options.parameters:
                cases.append(self._case(method, effective_tags, parameter, (parameter,)))
        return cases

    def _case(
        self,
        method: TestMethodSpec,
        tags: frozenset[str],
        parameter: Any,
        args: tuple[Any, ...],
    ) -> TestCase:
        label = parameter_label(parameter) if args else None
        template = method.options.name
        if template and label is not None:
            display = template.replace("{0}", label)
        elif template:
            display = template
        elif label is not None:
            display = f"{method.name}[{label}]"
        else:
            display = method.name
        cls = self.cls
        method_name = method.name

        def run(ctx: Any) -> Any:
            instance = cls()
            return getattr(instance, method_name)(ctx, *args)

        return TestCase(
            test_id=TestId(self.name, method.name, display, label),
            tags=tags,
            concurrent=method.options.concurrent,
            timeout=method.options.timeout,
            run=run,
        )


@dataclass(frozen=True)
class ClassPlan:
    spec: TestClassSpec
    cases: tuple[TestCase, ...]

    @property
    def name(self) -> str:
        return self.spec.name


def parameter_label(parameter: Any) -> str:
    if isinstance(parameter, Enum):
        return str(parameter.value)
    return str(parameter)


def collect_classes(module: ModuleType) -> list[TestClassSpec]:
    specs: list[TestClassSpec] = []
    for _, cls in inspect.getmembers(module, inspect.isclass):
        if cls.__module__ != module.__name__:
            continue
        configure = getattr(cls, DEPLOYMENT_ATTR, None)
        if configure is None:
            continue
        methods: list[TestMethodSpec] = []
        for attr_name, member in vars(cls).items():
            options = getattr(member, TEST_ATTR, None)
            if options is None or not callable(member):
                continue
            methods.append(
                TestMethodSpec(
                    name=attr_name,
                    options=options,
                    tags=frozenset(getattr(member, TAGS_ATTR, frozenset())),
                )
            )
        if not methods:
            logger.warning("Test class %s declares no tests", cls.__name__)
            continue
        specs.append(
            TestClassSpec(
                cls=cls,
                configure=configure,
                tags=frozenset(getattr(cls, TAGS_ATTR, frozenset())),
                methods=tuple(methods),
            )
        )
    return specs


def discover(package: str = SCENARIOS_PACKAGE) -> list[TestClassSpec]:
    try:
        root = importlib.import_module(package)
    except ImportError as e:
        raise HarnessError(f"Cannot import test package {package}: {e}") from e

    modules = [root]
    if hasattr(root, "__path__"):
        names = sorted(
            info.name
            for info in pkgutil.walk_packages(root.__path__, prefix=f"{root.__name__}.")
        )
        for name in names:
            modules.append(importlib.import_module(name))

    classes: list[TestClassSpec] = []
    seen: set[str] = set()
    for module in modules:
        for spec in collect_classes(module):
            if spec.name in seen:
                raise HarnessError(f"Duplicate test class name: {spec.name}")
            seen.add(spec.name)
            classes.append(spec)
    logger.debug("Discovered %d test classes in %s", len(classes), package)
    return classes


def _name_filter(raw: str) -> tuple[str, str | None]:
    class_name, _, method_name = raw.strip().partition("#")
    return class_name, method_name or None


def build_plan(
    classes: Sequence[TestClassSpec],
    tag_expression: str | None = None,
    name_filters: Sequence[str] | None = None,
) -> list[ClassPlan]:
    """Expand classes into cases, keeping only those matching tags and name filters."""
    matches_tags = parse_tag_expression(tag_expression)
    filters = [_name_filter(raw) for raw in name_filters or [] if raw.strip()]

    def selected(case: TestCase) -> bool:
        if not matches_tags(case.tags):
            return False
        if not filters:
            return True
        return any(
            case.test_id.class_name == class_name
            and (method_name is None or case.test_id.method_name == method_name)
            for class_name, method_name in filters
        )

    plans: list[ClassPlan] = []
    for spec in classes:
        cases = tuple(case for case in spec.cases() if selected(case))
        if cases:
            plans.append(ClassPlan(spec=spec, cases=cases))
    return plans
