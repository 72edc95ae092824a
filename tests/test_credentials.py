import json
from uuid import uuid4

import pytest

from mediahub.exceptions import CredentialStoreError
from mediahub.storage.credentials import (
    KEY_FILE_NAME,
    CredentialKind,
    CredentialStore,
)


@pytest.mark.asyncio
async def test_save_then_get_returns_value(credentials):
    instance_id = uuid4()
    await credentials.save_api_key("abc123", instance_id)

    assert await credentials.get_api_key(instance_id) == "abc123"


@pytest.mark.asyncio
async def test_save_overwrites_existing_value(credentials):
    instance_id = uuid4()
    await credentials.save_api_key("first", instance_id)
    await credentials.save_api_key("second", instance_id)

    assert await credentials.get_api_key(instance_id) == "second"


@pytest.mark.asyncio
async def test_get_missing_returns_none(credentials):
    assert await credentials.get(CredentialKind.PASSWORD, uuid4()) is None


@pytest.mark.asyncio
async def test_values_are_encrypted_at_rest(credentials):
    instance_id = uuid4()
    await credentials.save_api_key("plain-secret", instance_id)

    content = credentials.path.read_text(encoding="utf-8")
    assert "plain-secret" not in content
    assert f"{instance_id}-apiKey" in json.loads(content)


@pytest.mark.asyncio
async def test_values_survive_a_new_store(tmp_path, credentials):
    instance_id = uuid4()
    await credentials.save_credentials("admin", "hunter2", instance_id)

    reopened = CredentialStore(tmp_path, secret_key="test-secret")
    assert await reopened.get_credentials(instance_id) == ("admin", "hunter2")


@pytest.mark.asyncio
async def test_generated_key_file_is_reused(tmp_path):
    instance_id = uuid4()
    store = CredentialStore(tmp_path)
    await store.save_api_key("key", instance_id)

    key_path = tmp_path / KEY_FILE_NAME
    assert key_path.is_file()
    assert oct(key_path.stat().st_mode & 0o777) == "0o600"

    assert await CredentialStore(tmp_path).get_api_key(instance_id) == "key"


@pytest.mark.asyncio
async def test_wrong_secret_reads_as_absent(tmp_path, credentials):
    instance_id = uuid4()
    await credentials.save_api_key("key", instance_id)

    other = CredentialStore(tmp_path, secret_key="another-secret")
    assert await other.get_api_key(instance_id) is None


@pytest.mark.asyncio
async def test_corrupted_file_reads_as_absent(credentials):
    credentials.path.write_text("{not json", encoding="utf-8")

    assert await credentials.get_api_key(uuid4()) is None


@pytest.mark.asyncio
async def test_get_credentials_requires_both_values(credentials):
    instance_id = uuid4()
    await credentials.save(CredentialKind.USERNAME, "admin", instance_id)

    assert await credentials.get_credentials(instance_id) is None


@pytest.mark.asyncio
async def test_delete_all_removes_every_kind(credentials):
    instance_id = uuid4()
    other_id = uuid4()
    await credentials.save_api_key("key", instance_id)
    await credentials.save_credentials("admin", "pw", instance_id)
    await credentials.save_api_key("other", other_id)

    await credentials.delete_all(instance_id)

    for kind in CredentialKind:
        assert await credentials.get(kind, instance_id) is None
    assert await credentials.get_api_key(other_id) == "other"


@pytest.mark.asyncio
async def test_delete_all_without_stored_values_is_a_no_op(credentials):
    await credentials.delete_all(uuid4())

    assert not credentials.path.exists()


@pytest.mark.asyncio
async def test_tmdb_key_is_separate_from_instances(credentials):
    instance_id = uuid4()
    await credentials.save_tmdb_api_key("tmdb-key")
    await credentials.save_api_key("instance-key", instance_id)

    await credentials.delete_all(instance_id)

    assert await credentials.get_tmdb_api_key() == "tmdb-key"


@pytest.mark.asyncio
async def test_saving_empty_tmdb_key_deletes_it(credentials):
    await credentials.save_tmdb_api_key("tmdb-key")
    await credentials.save_tmdb_api_key("   ")

    assert await credentials.get_tmdb_api_key() is None


@pytest.mark.asyncio
async def test_unwritable_store_raises(credentials):
    credentials.path.mkdir()

    with pytest.raises(CredentialStoreError):
        await credentials.save_api_key("key", uuid4())
