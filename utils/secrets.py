# utils/secrets.py
import os
import json
import logging
from threading import Lock

# Writes to secrets.json may come from several handlers at once
file_lock = Lock()
log = logging.getLogger("[Secrets]")

SECRETS_JSON_PATH = os.getenv(
    "SECRETS_JSON_PATH", os.path.join(os.path.dirname(__file__), '../secrets.json')
)


def _load_secrets() -> dict:
    try:
        with open(SECRETS_JSON_PATH, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return {"STAFF_IDS": []}


def _save_secrets(data: dict) -> None:
    with open(SECRETS_JSON_PATH, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def get_staff_ids() -> list[int]:
    with file_lock:
        secrets = _load_secrets()
        return [int(staff_id) for staff_id in secrets.get('STAFF_IDS', [])]


def is_staff(tg_user_id: int) -> bool:
    return tg_user_id in get_staff_ids()


def add_staff_id(user_id: int) -> bool:
    """Returns True if the id was added."""
    with file_lock:
        secrets = _load_secrets()
        staff_ids = [int(i) for i in secrets.get('STAFF_IDS', [])]
        if user_id in staff_ids:
            log.warning(f"Staff id {user_id} is already registered.")
            return False
        staff_ids.append(user_id)
        secrets['STAFF_IDS'] = staff_ids
        _save_secrets(secrets)
        log.info(f"Staff id {user_id} added.")
        return True


def remove_staff_id(user_id: int) -> bool:
    """Returns True if the id was removed."""
    with file_lock:
        secrets = _load_secrets()
        staff_ids = [int(i) for i in secrets.get('STAFF_IDS', [])]
        if user_id not in staff_ids:
            log.warning(f"Tried to remove unknown staff id {user_id}.")
            return False
        staff_ids.remove(user_id)
        secrets['STAFF_IDS'] = staff_ids
        _save_secrets(secrets)
        log.info(f"Staff id {user_id} removed.")
        return True
