#!/usr/bin/env python3
"""Tests for RelayClient class.

This module tests posting bundles to the relay and decoding the
JSON-RPC response bodies into tagged results.
"""

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pfl_solver.models import Bundle, RelayError, RelayOk
from pfl_solver.utils.relay_client import RelayClient

RELAY_URL = "https://polygon-rpc.fastlane.xyz/"


def _mock_client(mock_client_class, body):
    mock_client = AsyncMock()
    mock_response = MagicMock()
    mock_response.json = MagicMock(return_value=body)
    mock_response.raise_for_status = MagicMock()
    mock_client.post = AsyncMock(return_value=mock_response)
    mock_client_class.return_value.__aenter__.return_value = mock_client
    return mock_client, mock_response


class TestRelayClient(unittest.IsolatedAsyncioTestCase):
    """Test cases for RelayClient class."""

    def setUp(self):
        """Set up test fixtures."""
        self.client = RelayClient(RELAY_URL, timeout=10.0)
        self.bundle = Bundle(
            id=1,
            jsonrpc="2.0",
            method="pfl_addSearcherBundle",
            params=("0x02f86b", '{"from":"0x"}'),
        )

    def test_init_requires_url(self):
        with pytest.raises(ValueError, match="Relay URL is required"):
            RelayClient("")

    @patch('pfl_solver.utils.relay_client.httpx.AsyncClient')
    async def test_post(self, mock_client_class):
        """Test _post sends JSON with the configured timeout."""
        mock_client, _ = _mock_client(mock_client_class, {"result": "ok"})

        result = await self.client._post({"test": "data"})

        mock_client.post.assert_called_once_with(
            RELAY_URL,
            json={"test": "data"},
            timeout=10.0
        )
        assert result == {"result": "ok"}

    @patch('pfl_solver.utils.relay_client.httpx.AsyncClient')
    async def test_post_http_error(self, mock_client_class):
        """Non-2xx responses raise."""
        _, mock_response = _mock_client(mock_client_class, {})
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "502 Bad Gateway", request=MagicMock(), response=MagicMock()
        )

        with pytest.raises(httpx.HTTPStatusError):
            await self.client._post({"test": "data"})

    @patch('pfl_solver.utils.relay_client.httpx.AsyncClient')
    async def test_send_bundle(self, mock_client_class):
        """Test send_bundle posts the bundle payload."""
        mock_client, _ = _mock_client(mock_client_class, {"jsonrpc": "2.0", "id": 1, "result": "0xabc"})

        response = await self.client.send_bundle(self.bundle)

        assert response == RelayOk(result="0xabc")
        posted = mock_client.post.call_args[1]['json']
        assert posted == {
            "id": 1,
            "jsonrpc": "2.0",
            "method": "pfl_addSearcherBundle",
            "params": ["0x02f86b", '{"from":"0x"}'],
        }

    @patch('pfl_solver.utils.relay_client.httpx.AsyncClient')
    async def test_send_bundle_relay_error(self, mock_client_class):
        _mock_client(mock_client_class, {"error": {"code": -32000, "message": "bundle rejected"}})

        response = await self.client.send_bundle(self.bundle)

        assert response == RelayError(message="bundle rejected", code=-32000)

    def test_decode_string_error(self):
        assert RelayClient.decode_response({"error": "rate limited"}) == RelayError(message="rate limited")

    def test_decode_error_without_code(self):
        assert RelayClient.decode_response({"error": {"message": "bad"}}) == RelayError(message="bad")

    def test_decode_null_error_with_result(self):
        assert RelayClient.decode_response({"error": None, "result": 1}) == RelayOk(result=1)

    def test_decode_empty_error_object(self):
        body = {"jsonrpc": "2.0", "id": 1, "error": {}}
        assert RelayClient.decode_response(body) == RelayError(message="{}")

    @patch('pfl_solver.utils.relay_client.httpx.AsyncClient')
    async def test_send_bundle_empty_error_object(self, mock_client_class):
        _mock_client(mock_client_class, {"jsonrpc": "2.0", "id": 1, "error": {}})

        response = await self.client.send_bundle(self.bundle)

        assert isinstance(response, RelayError)

    def test_decode_unknown_body(self):
        body = {"jsonrpc": "2.0", "id": 1}
        assert RelayClient.decode_response(body) == RelayOk(result=body)


if __name__ == "__main__":
    unittest.main()
