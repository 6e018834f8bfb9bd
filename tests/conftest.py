import uuid
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.jobstores.base import JobLookupError

from database.models.order import Order
from utils.statuses import S_PENDING

BASE_TIME = datetime(2024, 5, 10, 9, 0, tzinfo=timezone.utc)


def make_order(order_id: str = None, status: str = S_PENDING, user_id: str = "user-1",
               minutes: int = 0, prescription_url: str = "ricetta-1-foto.jpg", **kwargs) -> Order:
    return Order(
        id=order_id or str(uuid.uuid4()),
        created_at=BASE_TIME + timedelta(minutes=minutes),
        status=status,
        user_id=user_id,
        prescription_url=prescription_url,
        **kwargs,
    )


class InMemoryRecordStore:
    """Same surface as RecordStore, rows kept in a dict. Failures are switched on by flags."""

    def __init__(self, rows: list[dict] = ()):
        self.rows: dict[str, dict] = {str(r["id"]): dict(r) for r in rows}
        self.fail_list = False
        self.fail_insert = False
        self.fail_update = False
        self.calls: list[tuple] = []

    async def list(self, collection, filters=None, order_by=None):
        self.calls.append(("list", collection, filters, order_by))
        if self.fail_list:
            return [], "connection lost"
        rows = [dict(r) for r in self.rows.values()
                if all(r.get(k) == v for k, v in (filters or {}).items())]
        if order_by:
            column, ascending = order_by
            rows.sort(key=lambda r: r[column], reverse=not ascending)
        return rows, None

    async def get(self, collection, record_id):
        self.calls.append(("get", collection, record_id))
        row = self.rows.get(str(record_id))
        return (dict(row) if row else None), None

    async def insert(self, collection, record):
        self.calls.append(("insert", collection, record))
        if self.fail_insert:
            return None, "insert refused"
        row = {"id": str(uuid.uuid4()), "created_at": BASE_TIME, **record}
        self.rows[row["id"]] = row
        return dict(row), None

    async def update(self, collection, record_id, patch):
        self.calls.append(("update", collection, record_id, patch))
        if self.fail_update:
            return False, "permission denied"
        row = self.rows.get(str(record_id))
        if row is None:
            return False, "Record not found"
        row.update(patch)
        return True, None


class FakeStorage:
    def __init__(self, upload_error: str = None, sign_error: str = None):
        self.upload_error = upload_error
        self.sign_error = sign_error
        self.uploads: list[tuple] = []
        self.signed: list[tuple] = []

    async def upload(self, bucket, key, data, content_type="application/octet-stream"):
        self.uploads.append((bucket, key, data, content_type))
        if self.upload_error:
            return None, self.upload_error
        return key, None

    async def create_signed_url(self, bucket, key, ttl_seconds):
        self.signed.append((bucket, key, ttl_seconds))
        if self.sign_error:
            return None, self.sign_error
        return f"https://example.supabase.co/storage/v1/object/sign/{bucket}/{key}?token=t", None


def order_row(order: Order) -> dict:
    return {
        "id": order.id,
        "created_at": order.created_at,
        "status": order.status,
        "user_id": order.user_id,
        "prescription_url": order.prescription_url,
        "notes": order.notes,
        "delivery_address": order.delivery_address,
    }


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def storage():
    return FakeStorage()


class StubScheduler:
    def __init__(self):
        self.jobs: dict[str, dict] = {}

    def add_job(self, func, trigger=None, id=None, replace_existing=False, **kwargs):
        self.jobs[id] = {"func": func, "trigger": trigger, **kwargs}

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]
