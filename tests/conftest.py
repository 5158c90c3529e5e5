"""Pytest configuration and fixtures."""

import gc
import shutil
import tempfile
import time
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from payloadsign.bootstrap import ApplicationContainer, bootstrap_application
from payloadsign.config import Settings


@dataclass(frozen=True)
class KeyPair:
    """PEM files for one RSA key pair plus the loaded private key."""

    private_path: Path
    public_path: Path
    private_key: rsa.RSAPrivateKey


def _write_key_pair(directory: Path, name: str, key_size: int) -> KeyPair:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)

    private_path = directory / f"{name}.pem"
    public_path = directory / f"{name}.pub.pem"
    private_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return KeyPair(private_path=private_path, public_path=public_path, private_key=private_key)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        # Force garbage collection to release any file handles
        gc.collect()
        time.sleep(0.01)
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture(scope="session")
def key_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Session-wide directory holding generated key files."""
    return tmp_path_factory.mktemp("keys")


@pytest.fixture(scope="session")
def rsa2048_key(key_dir: Path) -> KeyPair:
    """Primary 2048-bit signing key."""
    return _write_key_pair(key_dir, "primary", 2048)


@pytest.fixture(scope="session")
def rsa2048_second_key(key_dir: Path) -> KeyPair:
    """Second 2048-bit key, used for key rotation scenarios."""
    return _write_key_pair(key_dir, "secondary", 2048)


@pytest.fixture(scope="session")
def rsa4096_key(key_dir: Path) -> KeyPair:
    """4096-bit signing key."""
    return _write_key_pair(key_dir, "large", 4096)


@pytest.fixture(scope="session")
def rsa1024_key(key_dir: Path) -> KeyPair:
    """Key with a modulus size the default configuration rejects."""
    return _write_key_pair(key_dir, "weak", 1024)


@pytest.fixture
def override_settings(temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide isolated payloadsign settings scoped to tests."""

    import payloadsign.config as config_module

    original_settings = getattr(config_module, "_settings", None)

    data_dir = temp_dir / "appdata"
    config_dir = temp_dir / "appconfig"
    data_dir.mkdir(parents=True, exist_ok=True)
    config_dir.mkdir(parents=True, exist_ok=True)

    settings = config_module.Settings(
        data_dir=data_dir,
        config_dir=config_dir,
        audit_enabled=True,
    )

    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings


@pytest.fixture
def container(override_settings: Settings) -> ApplicationContainer:
    """Application container wired against isolated settings."""
    return bootstrap_application(settings=override_settings)
