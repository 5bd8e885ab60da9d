"""Shared pytest fixtures for apotekpos.pos tests."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from apotekpos.pos.cart import CartItem


@pytest.fixture
def stock():
    """A stock record as returned by GET /stock/{kode_brg}."""
    return {
        "kode_brg": "PCT500",
        "nama_brg": "Paracetamol 500mg",
        "hj_ecer": 12500,
        "satuan": "STRIP",
        "q_akhir": 40,
    }


@pytest.fixture
def parameters():
    """Branch parameter record with service charges."""
    return {"service": 3000, "service_dokter": 5000}


@pytest.fixture
def session():
    """Dict standing in for request.session."""
    return {}


@pytest.fixture
def original_transaction():
    """A stored sale as returned by GET /transaction/one."""
    return {
        "id": 77,
        "invoice_number": "S25080300012",
        "customer_id": "15",
        "doctor_id": 4,
        "transaction_type": "2",
        "compounded": True,
        "full_prescription": False,
        "availability": True,
        "notes": "Resep dr. Andi",
        "items": [
            {
                "product_code": "AMX500",
                "product_name": "Amoxicillin 500mg",
                "quantity": 2,
                "price": 8000,
                "sub_total": 16000,
                "discount": 10,
                "nominal_discount": 1600,
                "service_fee": 5000,
                "misc": 0,
                "disc_promo": 0,
                "value_promo": 0,
                "no_promo": "",
                "promo_type": "1",
                "round_up": 0,
                "up_selling": "N",
                "total": 19400,
                "prescription_code": "RC ",
            },
            {
                "product_code": "VITC",
                "product_name": "Vitamin C",
                "quantity": 1,
                "price": 5000,
                "sub_total": 5000,
                "discount": 0,
                "nominal_discount": 0,
                "service_fee": 0,
                "misc": 0,
                "disc_promo": 500,
                "value_promo": 10,
                "no_promo": "PR01",
                "promo_type": "2",
                "round_up": 0,
                "up_selling": "Y",
                "total": 4500,
                "prescription_code": "",
            },
        ],
    }


def make_item(**overrides):
    """Build a cart line with sensible defaults."""
    values = {
        "id": 1,
        "name": "Paracetamol 500mg",
        "price": Decimal("12500"),
        "quantity": 1,
        "subtotal": Decimal("12500"),
        "total": Decimal("12500"),
        "product_code": "PCT500",
    }
    values.update(overrides)
    return CartItem(**values)


def mock_response(status_code=200, json_data=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    return response


def client_returning(mock_get_client, response, method="get"):
    """Wire a patched _get_client so the given method returns response."""
    mock_client = MagicMock()
    mock_get_client.return_value.__enter__ = MagicMock(return_value=mock_client)
    mock_get_client.return_value.__exit__ = MagicMock(return_value=False)
    getattr(mock_client, method).return_value = response
    return mock_client
