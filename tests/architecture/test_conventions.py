"""
Convention Enforcement Tests.

Permanent tests that catch anti-patterns which import-based layer rules
cannot detect: frozen dataclass conventions, immutable collections,
silent exception swallowing, and interface contracts.
"""

import ast
import inspect
from pathlib import Path

import pytest

from testgate.domain import interfaces
from testgate.infrastructure.execution.filesystem import FilesystemExecutionEngine
from testgate.infrastructure.execution.memory import InMemoryExecutionEngine
from testgate.infrastructure.persistence.filesystem import (
    FilesystemScenarioCatalog,
    FilesystemVersionSetStore,
)
from testgate.infrastructure.persistence.memory import (
    InMemoryScenarioCatalog,
    InMemoryVersionSetStore,
)
from testgate.infrastructure.publishing import (
    InMemoryStatusPublisher,
    LoggingStatusPublisher,
)

SRC_ROOT = Path(__file__).parent.parent.parent / "src" / "testgate"

# Documented exceptions to the frozen dataclass rule
MUTABLE_DATACLASS_ALLOWLIST = {"StatusMap"}


def _is_frozen_dataclass(node: ast.ClassDef) -> bool | None:
    """True/False for a @dataclass class, None for any other class."""
    for decorator in node.decorator_list:
        if isinstance(decorator, ast.Name) and decorator.id == "dataclass":
            return False
        if isinstance(decorator, ast.Call):
            func = decorator.func
            if isinstance(func, ast.Name) and func.id == "dataclass":
                for kw in decorator.keywords:
                    if kw.arg == "frozen" and isinstance(kw.value, ast.Constant):
                        return bool(kw.value.value)
                return False
    return None


class TestFrozenDataclassConvention:
    """All domain dataclasses must be frozen (except allowlisted ones)."""

    def test_domain_models_are_frozen(self):
        """All domain dataclasses must be frozen (except StatusMap)."""
        tree = ast.parse((SRC_ROOT / "domain" / "models.py").read_text())

        violations = [
            node.name
            for node in ast.walk(tree)
            if isinstance(node, ast.ClassDef)
            and _is_frozen_dataclass(node) is False
            and node.name not in MUTABLE_DATACLASS_ALLOWLIST
        ]

        assert not violations, (
            f"Domain dataclasses must be frozen. Violations: {violations}. "
            f"If mutable is intentional, add to MUTABLE_DATACLASS_ALLOWLIST."
        )


class TestImmutableCollections:
    """Frozen domain model fields should use tuple, not list."""

    def test_domain_models_use_tuples_not_lists(self):
        source = (SRC_ROOT / "domain" / "models.py").read_text()
        tree = ast.parse(source)
        violations = []

        for node in ast.walk(tree):
            if not isinstance(node, ast.ClassDef) or not _is_frozen_dataclass(node):
                continue
            for item in node.body:
                if isinstance(item, ast.AnnAssign) and item.target:
                    target_name = getattr(item.target, "id", "?")
                    annotation = ast.get_source_segment(source, item.annotation)
                    if annotation and (
                        "list[" in annotation.lower() or "dict[" in annotation.lower()
                    ):
                        violations.append(f"{node.name}.{target_name}")

        assert not violations, (
            "Frozen dataclass fields should use tuple, not list or dict:\n"
            + "\n".join(f"  - {v}" for v in violations)
        )


class TestNoSilentExceptionSwallowing:
    """No bare 'except: pass' or 'except Exception: pass' in src/."""

    def test_no_bare_except_pass(self):
        violations = []

        for py_file in SRC_ROOT.rglob("*.py"):
            source = py_file.read_text()
            for node in ast.walk(ast.parse(source)):
                if not isinstance(node, ast.ExceptHandler):
                    continue
                if node.type is None:
                    violations.append(f"{py_file.name}:{node.lineno}: bare except")
                    continue
                if len(node.body) == 1:
                    stmt = node.body[0]
                    is_pass = isinstance(stmt, ast.Pass)
                    is_ellipsis = (
                        isinstance(stmt, ast.Expr)
                        and isinstance(stmt.value, ast.Constant)
                        and stmt.value.value is ...
                    )
                    if is_pass or is_ellipsis:
                        handler = ast.get_source_segment(source, node.type) or ""
                        violations.append(
                            f"{py_file.name}:{node.lineno}: except {handler}: pass"
                        )

        assert not violations, "Silent exception swallowing found:\n" + "\n".join(
            f"  - {v}" for v in violations
        )


class TestInterfaceConventions:
    """Interface naming and contract conventions."""

    def test_all_ports_end_with_interface(self):
        """All ABCs in domain/interfaces.py must end with 'Interface'."""
        abstract_classes = [
            name
            for name, obj in inspect.getmembers(interfaces, inspect.isclass)
            if inspect.isabstract(obj) and not name.startswith("_")
        ]

        violations = [
            name for name in abstract_classes if not name.endswith("Interface")
        ]

        assert not violations, (
            f"Abstract classes should end with 'Interface': {violations}"
        )

    def test_all_interface_methods_are_abstract(self):
        """Every public method on a port must be abstract."""
        violations = []

        for name, cls in inspect.getmembers(interfaces, inspect.isclass):
            if not inspect.isabstract(cls) or not name.endswith("Interface"):
                continue
            for method_name, method in inspect.getmembers(
                cls, predicate=inspect.isfunction
            ):
                if method_name.startswith("_"):
                    continue
                if not getattr(method, "__isabstractmethod__", False):
                    violations.append(f"{name}.{method_name}")

        assert not violations, (
            f"Public interface methods must be abstract: {violations}"
        )

    @pytest.mark.parametrize(
        ("interface", "implementations"),
        [
            (
                interfaces.VersionSetStoreInterface,
                [InMemoryVersionSetStore, FilesystemVersionSetStore],
            ),
            (
                interfaces.ScenarioCatalogInterface,
                [InMemoryScenarioCatalog, FilesystemScenarioCatalog],
            ),
            (
                interfaces.ExecutionEngineInterface,
                [InMemoryExecutionEngine, FilesystemExecutionEngine],
            ),
            (
                interfaces.StatusPublisherInterface,
                [InMemoryStatusPublisher, LoggingStatusPublisher],
            ),
        ],
    )
    def test_implementations_satisfy_interfaces(self, interface, implementations):
        """All infrastructure adapters must implement all abstract methods."""
        for impl_cls in implementations:
            assert issubclass(impl_cls, interface)
            assert not inspect.isabstract(impl_cls), (
                f"{impl_cls.__name__} is missing methods: "
                f"{sorted(impl_cls.__abstractmethods__)}"
            )
