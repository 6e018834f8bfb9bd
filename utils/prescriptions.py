import mimetypes
import re
import time
from pathlib import Path
from typing import Optional

from api.supabase_backend import SupabaseStorageClient
from database.managers.order_manager import OrderManager, DEFAULT_DELIVERY_ADDRESS
from database.models.order import Order
from utils.config import PRESCRIPTION_BUCKET, SIGNED_URL_TTL_SECONDS
from utils.logger import get_logger

log = get_logger("[Prescriptions]")

ALLOWED_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".heic", ".pdf"}
DEFAULT_PHOTO_NAME = "foto.jpg"


def is_allowed_file(file_name: Optional[str], mime: Optional[str] = None) -> bool:
    if file_name and Path(file_name).suffix.lower() in ALLOWED_EXTS:
        return True
    return bool(mime) and (mime.startswith("image/") or mime == "application/pdf")


def content_type_for(file_name: str, mime: Optional[str] = None) -> str:
    if mime:
        return mime
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or "application/octet-stream"


def build_storage_key(file_name: str, now_ms: Optional[int] = None) -> str:
    """
    `ricetta-<epoch ms>-<name>`: the timestamp keeps two uploads of a file
    with the same name apart, whitespace in the name becomes underscores.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe_name = re.sub(r"\s", "_", file_name or DEFAULT_PHOTO_NAME)
    return f"ricetta-{now_ms}-{safe_name}"


async def submit_prescription(
        storage: SupabaseStorageClient,
        order_manager: OrderManager,
        owner_id: str,
        file_name: str,
        data: bytes,
        mime: Optional[str] = None,
        delivery_address: Optional[str] = None,
) -> tuple[Optional[Order], Optional[str]]:
    """
    Uploads the prescription, then creates the order pointing at it.
    A failed upload stops here: no order is inserted.
    Returns (order, error_message).
    """
    key = build_storage_key(file_name)
    path, error = await storage.upload(PRESCRIPTION_BUCKET, key, data, content_type_for(key, mime))
    if error:
        log.error(f"Upload of {key} for user {owner_id} failed: {error}")
        return None, f"Errore caricamento foto: {error}"

    order, error = await order_manager.create_order(
        owner_id, path, delivery_address=delivery_address or DEFAULT_DELIVERY_ADDRESS
    )
    if error:
        log.error(f"Order insert for {path} failed: {error}")
        return None, "Errore creazione ordine nel database"

    return order, None


async def prescription_link(
        storage: SupabaseStorageClient,
        order: Order,
        ttl_seconds: int = SIGNED_URL_TTL_SECONDS,
) -> tuple[Optional[str], Optional[str]]:
    """
    Short-lived link to the order's prescription.
    An order without prescription is not an error: (None, None).
    """
    if not order.has_prescription:
        return None, None
    return await storage.create_signed_url(PRESCRIPTION_BUCKET, order.prescription_url, ttl_seconds)
