# MIT License © 2025 Motohiro Suzuki
import pytest

from conftest import KEY_HEX
from serialauth.keysources.base import EnvKeySource, StaticKeySource
from serialauth.keysources.factory import make_key_source
from serialauth.protocol.config import SessionConfig
from serialauth.protocol.errors import KeySourceError


def test_static_from_hex():
    assert StaticKeySource(KEY_HEX).provide() == bytes.fromhex(KEY_HEX)


def test_static_rejects_bad_hex():
    with pytest.raises(KeySourceError):
        StaticKeySource("not-hex")


def test_env_source(monkeypatch):
    monkeypatch.setenv("SERIALAUTH_PSK_HEX", KEY_HEX)
    assert EnvKeySource().provide() == bytes.fromhex(KEY_HEX)


def test_env_source_missing(monkeypatch):
    monkeypatch.delenv("SERIALAUTH_PSK_HEX", raising=False)
    with pytest.raises(KeySourceError):
        EnvKeySource().provide()


def test_factory_prefers_config_hex(monkeypatch):
    monkeypatch.setenv("SERIALAUTH_PSK_HEX", "00" * 16)
    ks = make_key_source(SessionConfig(psk_hex=KEY_HEX))
    assert ks.name == "static"
    assert ks.provide() == bytes.fromhex(KEY_HEX)


def test_factory_custom_env_var(monkeypatch):
    monkeypatch.setenv("DEVICE_KEY", KEY_HEX)
    ks = make_key_source(SessionConfig(psk_env="DEVICE_KEY"))
    assert ks.name == "env"
    assert ks.provide() == bytes.fromhex(KEY_HEX)
