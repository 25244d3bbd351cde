"""Tests for the tollgate exception hierarchy."""

from __future__ import annotations

import pytest

from tollgate.core.errors import (
    INVALID_REQUEST_CODE,
    PARSE_ERROR_CODE,
    ConfigError,
    DuplicateToolError,
    InvocationError,
    LedgerUnreachableError,
    NotPricedError,
    ParseError,
    PaymentError,
    ProtocolError,
    RegistryError,
    RegistryFrozenError,
    StorageError,
    TollgateError,
    ToolNotFoundError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [
            DuplicateToolError("x"),
            ToolNotFoundError("x"),
            RegistryFrozenError("frozen"),
            NotPricedError("x"),
            LedgerUnreachableError("down"),
            ProtocolError("bad"),
            ParseError("bad json"),
            InvocationError("bad transition"),
            ConfigError("bad config"),
            StorageError("db"),
        ],
    )
    def test_all_inherit_from_base(self, exc):
        assert isinstance(exc, TollgateError)

    def test_registry_errors(self):
        assert issubclass(DuplicateToolError, RegistryError)
        assert issubclass(ToolNotFoundError, RegistryError)
        assert issubclass(RegistryFrozenError, RegistryError)

    def test_payment_errors(self):
        assert issubclass(NotPricedError, PaymentError)
        assert issubclass(LedgerUnreachableError, PaymentError)

    def test_parse_error_is_protocol_error(self):
        assert issubclass(ParseError, ProtocolError)


class TestAttributes:
    def test_duplicate_tool_name(self):
        err = DuplicateToolError("pizza")
        assert err.name == "pizza"
        assert "pizza" in str(err)

    def test_tool_not_found_message(self):
        assert str(ToolNotFoundError("nope")) == "Tool not found: nope"

    def test_not_priced_tool_name(self):
        err = NotPricedError("carousel")
        assert err.tool_name == "carousel"

    def test_protocol_error_default_code(self):
        assert ProtocolError("bad").code == INVALID_REQUEST_CODE

    def test_protocol_error_custom_code(self):
        assert ProtocolError("no such method", code=-32601).code == -32601

    def test_parse_error_code(self):
        assert ParseError("bad").code == PARSE_ERROR_CODE == -32700
