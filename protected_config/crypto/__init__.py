"""
Cryptographic module for Protected Configuration.

Purpose-scoped data protection used to encrypt and decrypt configuration
values.
"""

from .data_protection import (
    DataProtector,
    DataProtectionProvider,
    DataProtectionBuilder,
    FernetDataProtector,
    FernetDataProtectionProvider,
    generate_master_key,
    load_or_create_key_file,
)

__all__ = [
    'DataProtector',
    'DataProtectionProvider',
    'DataProtectionBuilder',
    'FernetDataProtector',
    'FernetDataProtectionProvider',
    'generate_master_key',
    'load_or_create_key_file',
]
