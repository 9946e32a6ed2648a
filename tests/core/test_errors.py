"""Tests for healer.core.errors.

Covers:
- Default category / retryable per error type
- Fluent context and cause chaining
- Serialization for logging
"""

import pytest
from kazoo.exceptions import NoNodeError as KazooNoNodeError

from healer.core.errors import (
    ConfigError,
    CoordinationConnectionError,
    CoordinationError,
    ErrorCategory,
    HealerError,
    LaunchError,
    NodeExistsError,
    NoNodeError,
    SessionLostError,
)


class TestDefaults:
    def test_base_error_is_internal_and_not_retryable(self):
        error = HealerError("boom")
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert str(error) == "boom"

    @pytest.mark.parametrize(
        "cls",
        [CoordinationConnectionError, NoNodeError, NodeExistsError, SessionLostError],
    )
    def test_coordination_family(self, cls):
        error = cls("x")
        assert isinstance(error, CoordinationError)
        assert error.category == ErrorCategory.COORDINATION

    def test_no_node_is_transient(self):
        assert NoNodeError("gone").retryable is True

    def test_connection_error_is_fatal(self):
        assert CoordinationConnectionError("down").retryable is False

    def test_launch_and_config_categories(self):
        assert LaunchError("x").category == ErrorCategory.LAUNCH
        assert ConfigError("x").category == ErrorCategory.CONFIG

    def test_explicit_override(self):
        error = LaunchError("x", retryable=True)
        assert error.retryable is True


class TestContextAndCause:
    def test_with_context_known_field(self):
        error = NoNodeError("gone").with_context(path="/workers")
        assert error.context.path == "/workers"

    def test_with_context_unknown_field_goes_to_metadata(self):
        error = LaunchError("x").with_context(program="/opt/w.jar")
        assert error.context.metadata == {"program": "/opt/w.jar"}

    def test_cause_is_chained(self):
        original = KazooNoNodeError()
        error = NoNodeError("gone", cause=original)
        assert error.cause is original
        assert error.__cause__ is original


class TestToDict:
    def test_minimal(self):
        d = NodeExistsError("dup").to_dict()
        assert d == {
            "error_type": "NodeExistsError",
            "message": "dup",
            "category": "COORDINATION",
            "retryable": False,
        }

    def test_with_context_and_cause(self):
        d = (
            CoordinationConnectionError("down", cause=OSError("refused"))
            .with_context(hosts="zk:2181")
            .to_dict()
        )
        assert d["context"] == {"hosts": "zk:2181"}
        assert "refused" in d["cause"]

    def test_repr(self):
        assert repr(LaunchError("nope")) == "LaunchError('nope', category=LAUNCH)"
