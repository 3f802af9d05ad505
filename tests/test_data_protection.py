"""
Tests for the Fernet data protection backend.

Tests purpose isolation, key file handling and the configure builder.
"""

import os
import stat
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from protected_config.crypto.data_protection import (
    DataProtectionBuilder,
    FernetDataProtectionProvider,
    generate_master_key,
    load_or_create_key_file,
)
from protected_config.exceptions import ArgumentError, DecryptionError


class TestFernetProtector:
    """Tests for protect/unprotect round trips and purpose isolation."""

    def test_protect_unprotect(self, protection_provider):
        """Round trip through a single protector."""
        protector = protection_provider.create_protector("App")
        ciphertext = protector.protect("s3cret")
        assert ciphertext != "s3cret"
        assert protector.unprotect(ciphertext) == "s3cret"

    def test_unicode_plaintext(self, protection_provider):
        """Non-ASCII plaintext survives a round trip."""
        protector = protection_provider.create_protector("App")
        assert protector.unprotect(protector.protect("pässwörd ✓")) == "pässwörd ✓"

    def test_different_purposes_isolated(self, protection_provider):
        """Ciphertext from one purpose fails under another."""
        ciphertext = protection_provider.create_protector("A").protect("x")
        with pytest.raises(DecryptionError):
            protection_provider.create_protector("B").unprotect(ciphertext)

    def test_sub_purpose_isolated_from_parent(self, protection_provider):
        """A sub-purpose protector has its own key."""
        parent = protection_provider.create_protector("App")
        child = parent.create_protector("db")
        assert child.purposes == ("App", "db")

        ciphertext = child.protect("x")
        with pytest.raises(DecryptionError):
            parent.unprotect(ciphertext)
        assert protection_provider.create_protector("App").create_protector("db").unprotect(ciphertext) == "x"

    def test_application_name_isolates(self, master_key):
        """The application name is part of key derivation."""
        ciphertext = FernetDataProtectionProvider(master_key, "one").create_protector("P").protect("x")
        with pytest.raises(DecryptionError):
            FernetDataProtectionProvider(master_key, "two").create_protector("P").unprotect(ciphertext)

    def test_malformed_ciphertext(self, protection_provider):
        """Malformed ciphertext raises DecryptionError naming the purpose."""
        protector = protection_provider.create_protector("App")
        with pytest.raises(DecryptionError) as exc_info:
            protector.unprotect("not-a-token")
        assert exc_info.value.purpose == "App"

    def test_empty_purpose_rejected(self, protection_provider):
        """Empty purposes are rejected at every level."""
        with pytest.raises(ArgumentError):
            protection_provider.create_protector("")
        with pytest.raises(ArgumentError):
            protection_provider.create_protector("App").create_protector("")


class TestMasterKey:
    def test_invalid_master_key(self):
        """A malformed master key is rejected."""
        with pytest.raises(ArgumentError):
            FernetDataProtectionProvider(b"too-short")

    def test_str_master_key(self):
        """Master keys may be given as str."""
        key = generate_master_key().decode("ascii")
        assert FernetDataProtectionProvider(key).create_protector("P") is not None


class TestKeyFile:
    """Tests for load_or_create_key_file()."""

    def test_creates_key_file(self, temp_dir):
        """A missing key file is created with owner-only permissions."""
        path = temp_dir / "keys" / "config.key"
        key = load_or_create_key_file(path)
        assert path.read_bytes() == key
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_loads_existing_key(self, key_file):
        """An existing key file is loaded unchanged."""
        assert load_or_create_key_file(key_file) == key_file.read_bytes()

    def test_rejects_invalid_key_file(self, temp_dir):
        """A key file with invalid content is rejected."""
        path = temp_dir / "bad.key"
        path.write_bytes(b"not a key")
        with pytest.raises(ArgumentError):
            load_or_create_key_file(path)


class TestDataProtectionBuilder:
    def test_master_key(self, master_key, protection_provider):
        """use_master_key() builds a compatible provider."""
        ciphertext = protection_provider.create_protector("P").protect("x")
        provider = DataProtectionBuilder().use_master_key(master_key).build()
        assert provider.create_protector("P").unprotect(ciphertext) == "x"

    def test_key_file_shared_between_builds(self, temp_dir):
        """Providers built from the same key file interoperate."""
        path = temp_dir / "config.key"
        ciphertext = DataProtectionBuilder().persist_keys_to_file(path).build().create_protector("P").protect("x")
        provider = DataProtectionBuilder().persist_keys_to_file(path).build()
        assert provider.create_protector("P").unprotect(ciphertext) == "x"

    def test_application_name(self, master_key):
        """set_application_name() reaches the provider."""
        provider = DataProtectionBuilder().use_master_key(master_key).set_application_name("svc").build()
        assert provider.application_name == "svc"

    def test_key_and_key_file_exclusive(self, master_key, key_file):
        """A master key and a key file cannot both be set."""
        builder = DataProtectionBuilder().use_master_key(master_key).persist_keys_to_file(key_file)
        with pytest.raises(ArgumentError):
            builder.build()

    def test_ephemeral_key(self, caplog):
        """Without a key an ephemeral one is generated with a warning."""
        provider = DataProtectionBuilder().build()
        assert isinstance(provider, FernetDataProtectionProvider)
        assert "ephemeral" in caplog.text
