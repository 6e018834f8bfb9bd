import re

from conftest import FakeStorage, make_order
from database.managers.order_manager import DEFAULT_DELIVERY_ADDRESS, OrderManager
from utils.config import PRESCRIPTION_BUCKET
from utils.prescriptions import (
    build_storage_key, content_type_for, is_allowed_file, prescription_link, submit_prescription,
)
from utils.statuses import S_PENDING


def test_storage_key_format():
    assert build_storage_key("my scan.pdf", now_ms=1700000000000) == "ricetta-1700000000000-my_scan.pdf"


def test_storage_key_uses_current_time():
    assert re.fullmatch(r"ricetta-\d{13}-foto\.jpg", build_storage_key("foto.jpg"))


def test_allowed_files():
    assert is_allowed_file("ricetta.PDF")
    assert is_allowed_file("scan.png")
    assert is_allowed_file(None, "image/heic")
    assert not is_allowed_file("notes.txt", "text/plain")


def test_content_type():
    assert content_type_for("a.pdf") == "application/pdf"
    assert content_type_for("a.bin", "image/jpeg") == "image/jpeg"


async def test_submit_uploads_then_creates_pending_order(store, storage):
    order, error = await submit_prescription(
        storage, OrderManager(store), "user-1", "foto.jpg", b"jpeg-bytes", mime="image/jpeg",
    )

    assert error is None
    assert order.status == S_PENDING
    assert order.user_id == "user-1"
    assert order.delivery_address == DEFAULT_DELIVERY_ADDRESS

    bucket, key, data, content_type = storage.uploads[0]
    assert bucket == PRESCRIPTION_BUCKET
    assert order.prescription_url == key
    assert data == b"jpeg-bytes"
    assert content_type == "image/jpeg"


async def test_submit_keeps_shared_location(store, storage):
    order, _ = await submit_prescription(
        storage, OrderManager(store), "user-1", "foto.jpg", b"x", delivery_address="45.46420, 9.19000",
    )
    assert order.delivery_address == "45.46420, 9.19000"


async def test_failed_upload_creates_no_order(store):
    storage = FakeStorage(upload_error="Bucket not found")
    order, error = await submit_prescription(storage, OrderManager(store), "user-1", "foto.jpg", b"x")

    assert order is None
    assert error == "Errore caricamento foto: Bucket not found"
    assert not [c for c in store.calls if c[0] == "insert"]


async def test_failed_insert_after_upload(store, storage):
    store.fail_insert = True
    order, error = await submit_prescription(storage, OrderManager(store), "user-1", "foto.jpg", b"x")

    assert order is None
    assert error == "Errore creazione ordine nel database"
    assert len(storage.uploads) == 1


async def test_prescription_link(storage):
    order = make_order(prescription_url="ricetta-1-foto.jpg")
    url, error = await prescription_link(storage, order, 60)

    assert error is None
    assert "ricetta-1-foto.jpg" in url
    assert storage.signed == [(PRESCRIPTION_BUCKET, "ricetta-1-foto.jpg", 60)]


async def test_prescription_link_without_file(storage):
    url, error = await prescription_link(storage, make_order(prescription_url=None), 60)
    assert url is None and error is None
    assert storage.signed == []


async def test_prescription_link_error():
    storage = FakeStorage(sign_error="Object not found")
    url, error = await prescription_link(storage, make_order(), 60)
    assert url is None
    assert error == "Object not found"
