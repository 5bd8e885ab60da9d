"""Tests for the POS backend client.

HTTP is mocked at the client factory; these tests check paths, params,
unwrapping and error mapping.
"""

import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import httpx
import pytest

from apotekpos.pos import api_client
from apotekpos.pos.api_client import Page, _handle_response, bearer, dumps
from apotekpos.pos.exceptions import (
    PosApiError,
    PosApiTimeout,
    PosApiUnavailable,
    SessionExpired,
    TransactionValidationError,
)

from .conftest import client_returning, mock_response

TOKEN = "token-abc"


class TestHelpers:
    def test_bearer_adds_prefix_once(self):
        assert bearer("abc") == "Bearer abc"
        assert bearer("Bearer abc") == "Bearer abc"

    def test_dumps_sends_decimals_as_numbers(self):
        body = json.loads(dumps({"cash": Decimal("25000"), "discount": Decimal("2500.50")}))

        assert body == {"cash": 25000, "discount": 2500.5}

    def test_page_from_list(self):
        page = Page.from_data([{"id": 1}, {"id": 2}])

        assert page.total_docs == 2
        assert page.total_pages == 1

    def test_page_from_paginated_dict(self):
        page = Page.from_data({"docs": [{"id": 1}], "totalDocs": 31, "page": 2, "totalPages": 4})

        assert page.docs == [{"id": 1}]
        assert page.total_docs == 31
        assert page.page == 2
        assert page.total_pages == 4


class TestHandleResponse:
    def test_success_returns_body(self):
        assert _handle_response(mock_response(200, {"data": {"id": 1}})) == {"data": {"id": 1}}

    def test_401_is_session_expired(self):
        with pytest.raises(SessionExpired) as exc_info:
            _handle_response(mock_response(401, {"message": "jwt expired"}))

        assert exc_info.value.status == 401
        assert exc_info.value.message == "Session expired. Please login again."

    def test_error_carries_backend_message(self):
        with pytest.raises(PosApiError) as exc_info:
            _handle_response(mock_response(422, {"message": "Stock not enough", "errors": {"qty": ["too high"]}}))

        assert exc_info.value.status == 422
        assert exc_info.value.message == "Stock not enough"
        assert exc_info.value.errors == {"qty": ["too high"]}

    def test_error_without_json_body(self):
        response = MagicMock()
        response.status_code = 502
        response.json.side_effect = ValueError("not json")

        with pytest.raises(PosApiError) as exc_info:
            _handle_response(response)

        assert exc_info.value.status == 502
        assert exc_info.value.message is None
        assert str(exc_info.value) == "API request failed"


class TestTransport:
    @patch("apotekpos.pos.api_client._get_client")
    def test_timeout(self, mock_get_client):
        mock_client = client_returning(mock_get_client, None)
        mock_client.get.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(PosApiTimeout):
            api_client.get_parameters(TOKEN)

    @patch("apotekpos.pos.api_client._get_client")
    def test_connection_error(self, mock_get_client):
        mock_client = client_returning(mock_get_client, None)
        mock_client.get.side_effect = httpx.ConnectError("refused")

        with pytest.raises(PosApiUnavailable):
            api_client.get_parameters(TOKEN)

    @patch("apotekpos.pos.api_client._get_client")
    def test_only_get_and_post_are_sent(self, mock_get_client):
        mock_client = client_returning(mock_get_client, None)

        with pytest.raises(ValueError, match="Unsupported method: PATCH"):
            api_client._send("PATCH", "/customer", TOKEN, payload={})

        mock_client.patch.assert_not_called()

    def test_client_headers(self, settings):
        settings.POS_API_BASE_URL = "https://pos-backend.test/api"

        with api_client._get_client(TOKEN) as client:
            assert client.headers["Authorization"] == "Bearer token-abc"
            assert str(client.base_url).startswith("https://pos-backend.test/api")


class TestListings:
    @patch("apotekpos.pos.api_client._get_client")
    def test_list_customers_params(self, mock_get_client):
        mock_client = client_returning(
            mock_get_client,
            mock_response(200, {"message": "OK", "data": {"docs": [{"id": 15}], "totalDocs": 1, "page": 1, "totalPages": 1}}),
        )

        page = api_client.list_customers(TOKEN, search="budi", sort_by="name")

        mock_client.get.assert_called_once_with(
            "/customer",
            params={"offset": "0", "limit": "100", "search": "budi", "sort_by": "name"},
        )
        assert page.docs == [{"id": 15}]

    @patch("apotekpos.pos.api_client._get_client")
    def test_empty_listing_raises(self, mock_get_client):
        client_returning(mock_get_client, mock_response(200, {"message": "Not found", "data": None}))

        with pytest.raises(PosApiError) as exc_info:
            api_client.list_doctors(TOKEN)

        assert exc_info.value.status == 400
        assert exc_info.value.message == "Not found"

    @patch("apotekpos.pos.api_client._get_client")
    def test_empty_search_result_is_empty_page(self, mock_get_client):
        client_returning(mock_get_client, mock_response(200, {"message": "OK", "data": []}))

        page = api_client.search_stock(TOKEN, search="zzz")

        assert page.docs == []
        assert page.total_docs == 0
        assert page.total_pages == 0

    @patch("apotekpos.pos.api_client._get_client")
    def test_search_stock(self, mock_get_client):
        mock_client = client_returning(
            mock_get_client,
            mock_response(200, {"data": [{"kode_brg": "PCT500"}]}),
        )

        page = api_client.search_stock(TOKEN, search="para", limit=20)

        mock_client.get.assert_called_once_with("/stock", params={"offset": "0", "limit": "20", "search": "para"})
        assert page.docs == [{"kode_brg": "PCT500"}]

    @patch("apotekpos.pos.api_client._get_client")
    def test_branch_wide_stock(self, mock_get_client):
        mock_client = client_returning(mock_get_client, mock_response(200, {"data": {"kode_brg": "PCT500"}}))

        api_client.get_branch_wide_stock(TOKEN, "PCT500")

        mock_client.get.assert_called_once_with("/stock/PCT500", params={"with_stock_details": "true"})

    def test_list_transactions_rejects_bad_pagination(self):
        with pytest.raises(ValueError, match="Invalid pagination parameters"):
            api_client.list_transactions(TOKEN, limit=101)
        with pytest.raises(ValueError):
            api_client.list_transactions(TOKEN, offset=-1)

    @patch("apotekpos.pos.api_client._get_client")
    def test_list_transactions_date_range(self, mock_get_client):
        mock_client = client_returning(mock_get_client, mock_response(200, {"data": {"docs": [], "totalDocs": 0}}))

        api_client.list_transactions(TOKEN, offset=10, limit=10, from_date="2025-08-01", to_date="2025-08-31")

        mock_client.get.assert_called_once_with(
            "/transaction",
            params={"offset": "10", "limit": "10", "from_date": "2025-08-01", "to_date": "2025-08-31"},
        )


class TestKassaAndInvoice:
    @patch("apotekpos.pos.api_client._get_client")
    def test_get_kassa(self, mock_get_client):
        mock_client = client_returning(mock_get_client, mock_response(200, {"data": {"default_jual": "2"}}))

        assert api_client.get_kassa(TOKEN, "DEV-01") == {"default_jual": "2"}
        mock_client.get.assert_called_once_with("/kassa/DEV-01", params=None)

    def test_get_kassa_requires_device(self):
        with pytest.raises(ValueError):
            api_client.get_kassa(TOKEN, "")

    @patch("apotekpos.pos.api_client._get_client")
    def test_next_invoice(self, mock_get_client):
        mock_client = client_returning(
            mock_get_client,
            mock_response(200, {"data": {"invoice_number": "S25080300013"}}),
        )

        assert api_client.get_next_invoice(TOKEN, "2") == "S25080300013"
        mock_client.get.assert_called_once_with("/transaction/next-invoice", params={"transaction_type": "2"})

    @patch("apotekpos.pos.api_client._get_client")
    def test_next_invoice_missing_raises(self, mock_get_client):
        client_returning(mock_get_client, mock_response(200, {"message": "OK", "data": {}}))

        with pytest.raises(PosApiError) as exc_info:
            api_client.get_next_invoice(TOKEN)

        assert exc_info.value.status == 502

    @patch("apotekpos.pos.api_client._get_client")
    def test_queue_number_uses_queue_service(self, mock_get_client, settings):
        settings.POS_QUEUE_URL = "http://queue.test/api"
        client_returning(mock_get_client, mock_response(200, {"data": {"queue_number": 42}}))

        assert api_client.get_next_queue_number(TOKEN) == 42
        mock_get_client.assert_called_once_with(TOKEN, "http://queue.test/api")


class TestTransactions:
    @patch("apotekpos.pos.api_client._get_client")
    def test_create_transaction_posts_json(self, mock_get_client):
        mock_client = client_returning(
            mock_get_client,
            mock_response(201, {"message": "Created", "data": {"id": 901}}),
            method="post",
        )
        payload = {"invoice_number": "S25080300013", "customer_id": 15, "items": [{"total": Decimal("12500")}]}

        result = api_client.create_transaction(TOKEN, payload)

        assert result == {"message": "Created", "data": {"id": 901}}
        args, kwargs = mock_client.post.call_args
        assert args == ("/transaction",)
        assert json.loads(kwargs["content"])["items"][0]["total"] == 12500

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"customer_id": 15, "items": [{}]}, "Invoice number is required"),
            ({"invoice_number": "S1", "items": [{}]}, "Customer ID is required"),
            ({"invoice_number": "S1", "customer_id": 15, "items": []}, "Transaction items are required"),
        ],
    )
    def test_create_transaction_validates(self, payload, message):
        with pytest.raises(TransactionValidationError) as exc_info:
            api_client.create_transaction(TOKEN, payload)

        assert exc_info.value.message == message

    @patch("apotekpos.pos.api_client._get_client")
    def test_get_transaction_trims_id(self, mock_get_client):
        mock_client = client_returning(mock_get_client, mock_response(200, {"data": {"id": 77}}))

        assert api_client.get_transaction(TOKEN, " 77 ") == {"id": 77}
        mock_client.get.assert_called_once_with("/transaction/one", params={"id": "77"})

    def test_get_transaction_requires_id(self):
        with pytest.raises(ValueError):
            api_client.get_transaction(TOKEN, "  ")
