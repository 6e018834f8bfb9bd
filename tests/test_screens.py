from decimal import Decimal

import pytest

from conftest import make_order
from database.models.product import Product
from handlers.client import MAX_LISTED_ORDERS, format_catalog, render_customer_orders, render_main_menu
from handlers.staff import render_dashboard, render_order_card
from utils import secrets
from utils.order_board import OrderBoard
from utils.statuses import S_PENDING, S_ACCEPTED, S_DELIVERED


@pytest.fixture(autouse=True)
def no_staff(tmp_path, monkeypatch):
    monkeypatch.setattr(secrets, "SECRETS_JSON_PATH", str(tmp_path / "secrets.json"))


def test_dashboard_counts_active_orders():
    board = OrderBoard([
        make_order("a", status=S_PENDING),
        make_order("b", status=S_ACCEPTED, minutes=1),
        make_order("c", status=S_DELIVERED, minutes=2),
    ])
    text, _ = render_dashboard(board)
    assert "Ordini attivi: <b>2</b>" in text
    assert "Ordini totali: <b>3</b>" in text


def test_empty_dashboard():
    text, _ = render_dashboard(OrderBoard())
    assert "Nessun ordine in arrivo." in text


def test_order_card_shows_pending_change():
    board = OrderBoard([make_order("abcdef99", notes="Urgente <subito>")])
    board.apply_tentative("abcdef99", S_ACCEPTED)

    text, _ = render_order_card(board, "abcdef99")

    assert "#abcdef" in text
    assert "Accettato ⏳" in text
    assert "Urgente &lt;subito&gt;" in text
    assert "Ricetta allegata" in text


def test_order_card_for_vanished_order():
    text, markup = render_order_card(OrderBoard(), "gone")
    assert "non più disponibile" in text
    assert markup.inline_keyboard


def test_customer_list_is_capped():
    orders = [make_order(f"o{i}", minutes=i) for i in range(MAX_LISTED_ORDERS + 3)]
    text, _ = render_customer_orders(OrderBoard(orders))
    assert "… e altri 3 ordini" in text


def test_customer_list_empty():
    text, _ = render_customer_orders(OrderBoard())
    assert "Non hai ancora fatto ordini." in text


def test_catalog():
    products = [Product(id="1", name="Tachipirina", price=Decimal("5.9"), description="Paracetamolo 500mg",
                        image_url=None, requires_prescription=False)]
    text = format_catalog(products)
    assert "<b>Tachipirina</b> · € 5.90" in text
    assert "Serve la ricetta" not in text
    assert "Nessun prodotto" in format_catalog([])


def test_guest_menu():
    text, markup = render_main_menu(42, None)
    assert "Benvenuto" in text
    assert markup.inline_keyboard[0][0].callback_data == "auth:login"
