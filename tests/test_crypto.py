import base64
from datetime import datetime

import pytest

from business_portal import crypto
from business_portal.crypto import encrypt, decrypt, encrypt_date, decrypt_date, encrypt_number, decrypt_number, blind_hash
from business_portal.errors import EncryptionError


def test_encrypt_produces_fresh_tokens(app):
    first, second = encrypt('Budi Santoso'), encrypt('Budi Santoso')
    assert first != second
    assert decrypt(first) == decrypt(second) == 'Budi Santoso'


def test_token_layout(app):
    raw = base64.b64decode(encrypt('x'))
    assert len(raw) == crypto.IV_LENGTH + crypto.AUTH_TAG_LENGTH + 1


def test_empty_values_are_null(app):
    assert encrypt(None) is None
    assert encrypt('') is None
    assert decrypt(None) is None
    assert decrypt('') is None


def test_undecryptable_values_return_none(app):
    assert decrypt('not base64 !!') is None
    assert decrypt(base64.b64encode(b'short').decode()) is None

    token = bytearray(base64.b64decode(encrypt('secret')))
    token[-1] ^= 0xFF
    assert decrypt(base64.b64encode(bytes(token)).decode()) is None


def test_key_change_breaks_decryption(app):
    token = encrypt('payload')
    app.config['AUTH_KEY'] = 'another-key'
    assert decrypt(token) is None


def test_missing_key_raises(app, monkeypatch):
    app.config['AUTH_KEY'] = None
    monkeypatch.delenv('AUTH_KEY', raising=False)
    with pytest.raises(EncryptionError):
        encrypt('x')


def test_dates_and_numbers(app):
    moment = datetime(2026, 3, 2, 8, 15)
    assert decrypt_date(encrypt_date(moment)) == moment
    assert encrypt_date(None) is None
    assert decrypt_number(encrypt_number(1500000)) == 1500000.0
    assert decrypt_number(None) == 0.0


def test_blind_hash_is_normalized(app):
    assert blind_hash(' Admin@Portal.co.id ') == blind_hash('admin@portal.co.id')
    assert blind_hash('a') != blind_hash('b')
    assert blind_hash('') is None
    assert blind_hash(None) is None
