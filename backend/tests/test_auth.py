import pytest

from auth import SignedInUser, create_access_token, decode_access_token, hash_password, verify_password
from config import USERS_COLLECTION
from exceptions import AuthError
from result import ErrorKind


def test_password_hashing():
    hashed = hash_password("squat-rack")

    assert hashed != "squat-rack"
    assert verify_password("squat-rack", hashed)
    assert not verify_password("bench", hashed)
    assert not verify_password("bench", "not-a-bcrypt-hash")


def test_token_roundtrip():
    assert decode_access_token(create_access_token("u42")) == "u42"


def test_garbage_token_is_rejected():
    with pytest.raises(AuthError, match="Invalid token"):
        decode_access_token("abc.def.ghi")


@pytest.mark.asyncio
async def test_sign_up_then_sign_in(services, client):
    auth = SignedInUser(services.auth)

    signed_up = await auth.sign_up("Tina", "tina@example.com", "pw", role="trainer")
    assert signed_up.is_success
    user = signed_up.data.user
    stored = client.collections[USERS_COLLECTION][user.id]
    assert stored["role"] == "trainer"
    assert stored["password_hash"] != "pw"
    assert auth.current_user_id() == user.id

    auth.sign_out()
    assert auth.current_user_id() is None
    assert (await auth.get_current_user()).kind == ErrorKind.UNAUTHORIZED

    signed_in = await auth.sign_in("tina@example.com", "pw")
    assert signed_in.is_success
    assert decode_access_token(signed_in.data.token) == user.id
    current = await auth.get_current_user()
    assert current.data.name == "Tina"


@pytest.mark.asyncio
async def test_sign_in_state_is_per_caller(services):
    alice = SignedInUser(services.auth)
    bob = SignedInUser(services.auth)
    await alice.sign_up("Alice", "alice@example.com", "pw")
    await bob.sign_up("Bob", "bob@example.com", "pw")

    await alice.sign_in("alice@example.com", "pw")

    assert (await bob.get_current_user()).data.name == "Bob"
    assert (await alice.get_current_user()).data.name == "Alice"
    assert not hasattr(services.auth, "current_user_id")


@pytest.mark.asyncio
async def test_wrong_password(services):
    await services.auth.sign_up("Tina", "tina@example.com", "pw")

    result = await services.auth.sign_in("tina@example.com", "nope")

    assert result.kind == ErrorKind.UNAUTHORIZED
    assert result.message == "Invalid credentials"


@pytest.mark.asyncio
async def test_duplicate_email_and_bad_role(services):
    await services.auth.sign_up("Tina", "tina@example.com", "pw")

    assert (await services.auth.sign_up("T2", "tina@example.com", "pw")).kind == ErrorKind.INVALID
    assert (await services.auth.sign_up("T3", "t3@example.com", "pw", role="admin")).kind == ErrorKind.INVALID


@pytest.mark.asyncio
async def test_sign_up_when_offline(services, client):
    client.offline = True

    result = await services.auth.sign_up("Tina", "tina@example.com", "pw")

    assert result.kind == ErrorKind.REMOTE_UNAVAILABLE


@pytest.mark.asyncio
async def test_email_taken_by_concurrent_sign_up(services, client):
    async def rejected_by_unique_index(collection, doc_id, document):
        return False

    client.create_if_absent = rejected_by_unique_index

    result = await services.auth.sign_up("Tina", "tina@example.com", "pw")

    assert result.kind == ErrorKind.INVALID
    assert result.message == "Email already registered"


@pytest.mark.asyncio
async def test_malformed_user_record_is_invalid(services, client):
    client.collections[USERS_COLLECTION]["u1"] = {
        "id": "u1",
        "email": "odd@example.com",
        "role": "admin",
        "password_hash": hash_password("pw"),
    }

    assert (await services.auth.sign_in("odd@example.com", "pw")).kind == ErrorKind.INVALID
    assert (await services.auth.get_user("u1")).kind == ErrorKind.INVALID
