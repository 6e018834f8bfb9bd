from unittest.mock import AsyncMock

from api.supabase_backend import SupabaseAuthClient, SupabaseStorageClient, error_message
from test_session import PAYLOAD
from utils.session import Session

URL = "https://demo.supabase.co"


def test_error_message_picks_known_keys():
    assert error_message({"msg": "Invalid login credentials"}, 400) == "Invalid login credentials"
    assert error_message({"error_description": "Email not confirmed"}, 400) == "Email not confirmed"
    assert error_message({"message": "Bucket not found", "error": "x"}, 404) == "Bucket not found"
    assert error_message(None, 502) == "HTTP 502"


async def test_sign_in_builds_session():
    client = SupabaseAuthClient(URL, "anon")
    client._make_request = AsyncMock(return_value=(PAYLOAD, None))

    session, error = await client.sign_in("mario@example.com", "secret")

    assert error is None
    assert session.user_id == "5b1c-user"
    args, kwargs = client._make_request.await_args
    assert args == ("POST", "/auth/v1/token")
    assert kwargs["params"] == {"grant_type": "password"}


async def test_sign_in_error_is_passed_through():
    client = SupabaseAuthClient(URL, "anon")
    client._make_request = AsyncMock(return_value=(None, "Invalid login credentials"))
    assert await client.sign_in("mario@example.com", "wrong") == (None, "Invalid login credentials")


async def test_sign_in_with_malformed_payload():
    client = SupabaseAuthClient(URL, "anon")
    client._make_request = AsyncMock(return_value=({"user": {}}, None))
    session, error = await client.sign_in("mario@example.com", "secret")
    assert session is None
    assert error


async def test_sign_up_and_sign_out():
    client = SupabaseAuthClient(URL, "anon")
    client._make_request = AsyncMock(return_value=({}, None))
    assert await client.sign_up("mario@example.com", "secret") == (True, None)

    await client.sign_out(Session.from_payload(PAYLOAD))
    kwargs = client._make_request.await_args.kwargs
    assert kwargs["headers"] == {"Authorization": "Bearer jwt-token"}


async def test_signed_url_is_absolute():
    client = SupabaseStorageClient(URL + "/", "service")
    client._make_request = AsyncMock(
        return_value=({"signedURL": "/object/sign/prescriptions/ricetta-1-foto.jpg?token=abc"}, None)
    )

    url, error = await client.create_signed_url("prescriptions", "ricetta-1-foto.jpg", 60)

    assert error is None
    assert url == URL + "/storage/v1/object/sign/prescriptions/ricetta-1-foto.jpg?token=abc"
    assert client._make_request.await_args.kwargs["json_payload"] == {"expiresIn": 60}


async def test_upload_never_overwrites():
    client = SupabaseStorageClient(URL, "service")
    client._make_request = AsyncMock(return_value=({"Key": "prescriptions/k"}, None))

    key, error = await client.upload("prescriptions", "ricetta-1-foto.jpg", b"x", "image/jpeg")

    assert (key, error) == ("ricetta-1-foto.jpg", None)
    headers = client._make_request.await_args.kwargs["headers"]
    assert headers["x-upsert"] == "false"
    assert headers["Content-Type"] == "image/jpeg"
