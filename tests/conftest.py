"""
Pytest configuration and shared fixtures for Protected Configuration tests.

This module provides common fixtures: temporary directories, master keys,
Fernet protection providers and a purpose-sensitive fake protector.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator, Tuple

import pytest

# Add the parent directory to the path for imports
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from protected_config.constants import Purposes
from protected_config.crypto.data_protection import (
    DataProtectionProvider,
    DataProtector,
    FernetDataProtectionProvider,
    generate_master_key,
)
from protected_config.exceptions import DecryptionError


# ===========================================================================
# Fake Data Protection
# ===========================================================================

class FakeDataProtector(DataProtector):
    """
    Table-driven protector.

    unprotect() succeeds only for (purpose chain, ciphertext) pairs present in
    the table, which makes it purpose-sensitive like a real protector.
    """

    def __init__(self, table: Dict[Tuple[Tuple[str, ...], str], str], purposes: Tuple[str, ...]):
        self.table = table
        self.purposes = purposes
        self.unprotect_calls = []

    def protect(self, plaintext: str) -> str:
        ciphertext = f"enc-{len(self.table)}"
        self.table[(self.purposes, ciphertext)] = plaintext
        return ciphertext

    def unprotect(self, ciphertext: str) -> str:
        self.unprotect_calls.append(ciphertext)
        try:
            return self.table[(self.purposes, ciphertext)]
        except KeyError:
            raise DecryptionError(f"cannot decrypt {ciphertext}", purpose=".".join(self.purposes))

    def create_protector(self, purpose: str) -> "FakeDataProtector":
        return FakeDataProtector(self.table, self.purposes + (purpose,))


class FakeProtectionProvider(DataProtectionProvider):
    def __init__(self, table=None):
        self.table = table if table is not None else {}
        self.created_purposes = []

    def create_protector(self, purpose: str) -> FakeDataProtector:
        self.created_purposes.append(purpose)
        return FakeDataProtector(self.table, (purpose,))


# ===========================================================================
# Temporary Directory Fixtures
# ===========================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="protected_config_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def key_file(temp_dir: Path) -> Path:
    """Provide a key file path containing a fresh master key."""
    path = temp_dir / "config.key"
    path.write_bytes(generate_master_key())
    return path


# ===========================================================================
# Data Protection Fixtures
# ===========================================================================

@pytest.fixture
def master_key() -> bytes:
    return generate_master_key()


@pytest.fixture
def protection_provider(master_key: bytes) -> FernetDataProtectionProvider:
    """Provide a Fernet protection provider with a fresh master key."""
    return FernetDataProtectionProvider(master_key)


@pytest.fixture
def base_protector(protection_provider: FernetDataProtectionProvider):
    """Protector bound to the default builder purpose."""
    return protection_provider.create_protector(Purposes.default())


@pytest.fixture
def fake_provider() -> FakeProtectionProvider:
    """
    Provide a purpose-sensitive fake provider.

    The same ciphertext "AQAAANCMnd8=" maps to different plaintexts depending
    on the purpose chain.
    """
    return FakeProtectionProvider({
        ((Purposes.default(),), "AQAAANCMnd8="): "secret1",
        ((Purposes.default(), "db"), "AQAAANCMnd8="): "dbsecret",
        ((Purposes.default(), "api"), "AQAAANCMnd8="): "apisecret",
        ((Purposes.for_key_number(2),), "AQAAANCMnd8="): "key2secret",
        (("Custom",), "AQAAANCMnd8="): "customsecret",
    })
