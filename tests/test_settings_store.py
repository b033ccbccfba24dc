from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path
import json
import pytest
from src.lib.crypto import JournalCrypto
from src.lib.models import AppSettings
from src.lib.settings_store import SecureSettingsStore
from src.lib.storage import FileStorage, StorageError

PW = 'settings-passphrase'

class FlakyStorage(FileStorage):
    """FileStorage whose writes can be switched off and whose next reads can be made to fail."""
    fail_writes = False
    failing_reads = 0

    def read_bytes(self, key):
        if self.failing_reads:
            self.failing_reads -= 1
            raise StorageError("simulated read failure")
        return super().read_bytes(key)

    def write_bytes_atomic(self, key, data):
        if self.fail_writes:
            raise StorageError('simulated I/O failure')
        return super().write_bytes_atomic(key, data)

@pytest.fixture
def storage(tmp_path: Path):
    return FlakyStorage(tmp_path / 'data')

@pytest.fixture
def crypto():
    return JournalCrypto(iterations=1000)

@pytest.fixture
def store(storage, crypto):
    s = SecureSettingsStore(storage, password=PW, crypto=crypto)
    yield s
    s.clear_cache()

def test_load_without_file_returns_defaults(store):
    s = store.load()
    assert s.is_valid()
    assert s == AppSettings.create_default()

def test_save_clear_load_roundtrip(store):
    original = AppSettings.create_default()
    original.text_size = 16
    original.theme = 'Dark'
    assert store.save(original)
    store.clear_cache()
    loaded = store.load()
    assert loaded.text_size == 16
    assert loaded.theme == 'Dark'

def test_blob_is_encrypted_on_disk(store, storage):
    store.save(AppSettings(default_category='VerySecretCategory'))
    raw = storage.read_bytes('settings.dat')
    assert b'VerySecretCategory' not in raw
    assert raw[0] == 1

def test_new_store_reads_persisted_state(store, storage, crypto):
    assert store.update_text_size(20)
    other = SecureSettingsStore(storage, password=PW, crypto=crypto)
    assert other.load().text_size == 20

def test_load_returns_copy_not_cache(store):
    s = store.load()
    s.text_size = 40
    assert store.load().text_size != 40

@pytest.mark.parametrize('method,bad', [
    ('update_text_size', 999), ('update_text_size', 7),
    ('update_auto_save_interval', -1), ('update_auto_save_interval', 301),
    ('update_backup_frequency', 0), ('update_backup_frequency', 169),
    ('update_default_category', 'a' * 60),
])
def test_updates_reject_invalid_values(store, storage, method, bad):
    assert store.update_text_size(18)
    blob_before = storage.read_bytes('settings.dat')
    assert getattr(store, method)(bad) is False
    assert store.load().text_size == 18
    assert storage.read_bytes('settings.dat') == blob_before

def test_updates_accept_valid_values(store):
    assert store.update_text_size(24)
    assert store.update_auto_save_interval(60)
    assert store.update_backup_frequency(12)
    assert store.update_theme('auto')
    assert store.update_default_category('Travel')
    store.clear_cache()
    s = store.load()
    assert (s.text_size, s.auto_save_interval, s.backup_frequency, s.theme, s.default_category) == (24, 60, 12, 'Auto', 'Travel')

def test_update_theme_unsafe_falls_back(store):
    assert store.update_theme('<script>alert(1)</script>')
    assert store.load().theme == 'Light'

def test_wrong_password_falls_back_to_defaults(store, storage, crypto):
    store.update_text_size(30)
    intruder = SecureSettingsStore(storage, password='not-the-passphrase', crypto=crypto)
    assert intruder.load() == AppSettings.create_default()

def test_tampered_blob_falls_back_to_defaults(store, storage):
    store.update_text_size(30)
    blob = bytearray(storage.read_bytes('settings.dat'))
    blob[-1] ^= 0xFF
    storage.write_bytes_atomic('settings.dat', bytes(blob))
    store.clear_cache()
    s = store.load()
    assert s.is_valid() and s.text_size == AppSettings().text_size

def test_garbage_file_falls_back_to_defaults(store, storage):
    storage.write_bytes_atomic('settings.dat', b'not an encrypted blob')
    assert store.load().is_valid()

def test_valid_blob_with_bad_payload_falls_back(store, storage, crypto):
    for payload in [b'not json', json.dumps({'version': 99, 'settings': {}}).encode(),
                    json.dumps({'version': 1, 'settings': {'text_size': 500}}).encode()]:
        storage.write_bytes_atomic('settings.dat', crypto.encrypt_bytes(payload, PW))
        store.clear_cache()
        assert store.load() == AppSettings.create_default()

def test_failed_write_keeps_previous_state(store, storage):
    assert store.update_text_size(16)
    storage.fail_writes = True
    assert store.update_text_size(20) is False
    assert store.save(AppSettings(text_size=30)) is False
    assert store.load().text_size == 16
    storage.fail_writes = False
    store.clear_cache()
    reloaded = store.load()
    assert reloaded.is_valid() and reloaded.text_size == 16

def test_storage_reporting_false_is_failure(store, storage, monkeypatch):
    monkeypatch.setattr(storage, 'write_bytes_atomic', lambda key, data: False)
    assert store.update_text_size(20) is False
    assert store.load().text_size == AppSettings().text_size

def test_save_refuses_non_settings(store):
    assert store.save({'text_size': 16}) is False

def test_concurrent_updates_stay_consistent(store):
    def work(index):
        store.update_text_size(12 + index)
        store.update_auto_save_interval(30 + index)
    with ThreadPoolExecutor(max_workers=10) as pool:
        list(pool.map(work, range(10)))
    s = store.load()
    assert s.is_valid()
    assert 12 <= s.text_size <= 21
    assert 30 <= s.auto_save_interval <= 39
    store.clear_cache()
    assert store.load() == s

def test_backup_and_restore(store, tmp_path):
    store.update_text_size(22)
    backup = store.backup(tmp_path / 'backups')
    assert backup.exists() and backup.name.endswith('.backup')
    store.update_text_size(40)
    assert store.restore(backup)
    assert store.load().text_size == 22
    store.clear_cache()
    assert store.load().text_size == 22

def test_backup_without_settings_raises(store, tmp_path):
    with pytest.raises(StorageError):
        store.backup(tmp_path / 'backups')

def test_restore_rejects_tampered_backup(store, tmp_path):
    store.update_text_size(22)
    backup = store.backup(tmp_path / 'backups')
    data = bytearray(backup.read_bytes()); data[20] ^= 0x01
    backup.write_bytes(bytes(data))
    store.update_text_size(40)
    assert store.restore(backup) is False
    assert store.restore(tmp_path / 'missing.backup') is False
    assert store.load().text_size == 40

def test_backup_due(store):
    store.update_backup_frequency(6)
    now = datetime(2024, 1, 1, 12, 0)
    assert store.backup_due(None, now)
    assert not store.backup_due(now - timedelta(hours=5), now)
    assert store.backup_due(now - timedelta(hours=6), now)

def test_default_passphrase_from_environment(storage, crypto, monkeypatch):
    monkeypatch.setenv('JOURNAL_SETTINGS_PASSPHRASE', 'from-env')
    s1 = SecureSettingsStore(storage, crypto=crypto)
    assert s1.update_text_size(33)
    assert SecureSettingsStore(storage, password='from-env', crypto=crypto).load().text_size == 33

def test_read_error_does_not_overwrite_stored_settings(store, storage, crypto):
    assert store.update_text_size(40)
    store.clear_cache()
    storage.failing_reads = 1
    # a write while the stored state is unknown is refused
    assert store.update_theme('dark') is False
    assert store.update_theme('dark')
    other = SecureSettingsStore(storage, password=PW, crypto=crypto)
    settings = other.load()
    assert (settings.text_size, settings.theme) == (40, 'Dark')

def test_defaults_from_read_error_are_not_cached(store, storage):
    assert store.update_text_size(40)
    store.clear_cache()
    storage.failing_reads = 1
    assert store.load() == AppSettings.create_default()
    assert store.load().text_size == 40

def test_save_refused_while_storage_unreadable(store, storage):
    assert store.update_text_size(40)
    store.clear_cache()
    storage.failing_reads = 2
    assert store.load().text_size == AppSettings().text_size
    assert store.save(AppSettings(theme='Dark')) is False
    assert store.load().text_size == 40
