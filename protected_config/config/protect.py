"""
Protecting configuration values - the encryption side of the token syntax.

Values to encrypt are marked in plaintext configuration with the Protect
token and rewritten into Protected tokens:

    "Protect:{s3cret}"          ->  "Protected:{gAAAAAB...}"
    "Protect:{db}:{s3cret}"     ->  "Protected:{db}:{gAAAAAB...}"

The qualifier segment is kept so the value is decrypted with the same
sub-purpose it was encrypted with.

Files are rewritten atomically with secure permissions and an optional
timestamped backup.
"""

import configparser
import io
import json
import logging
import os
import re
import shutil
import tempfile
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..constants import Patterns, Permissions
from ..crypto.data_protection import DataProtector
from .token_pattern import TokenPattern

logger = logging.getLogger(__name__)


class ConfigFormat(Enum):
    """Supported configuration file formats."""
    JSON = "json"
    YAML = "yaml"
    INI = "ini"


def detect_format(filepath: Path) -> ConfigFormat:
    """Detect configuration format from file extension."""
    ext = filepath.suffix.lower()
    if ext in {'.yaml', '.yml'}:
        return ConfigFormat.YAML
    elif ext in {'.ini', '.conf', '.cfg'}:
        return ConfigFormat.INI
    elif ext == '.json':
        return ConfigFormat.JSON
    raise ValueError(
        f"Unsupported config file format: {ext}. Use .json, .yaml, .yml, .ini, .conf or .cfg"
    )


def _protected_replacement(protect_pattern: TokenPattern, protector: DataProtector):
    sub_protectors: Dict[str, DataProtector] = {}

    def replace(match: re.Match) -> str:
        plaintext = match.group(protect_pattern.PAYLOAD_GROUP)
        qualifier = protect_pattern.qualifier_of(match)

        if qualifier is None:
            return f"{Patterns.PROTECTED_MARKER}:{{{protector.protect(plaintext)}}}"

        if qualifier not in sub_protectors:
            sub_protectors[qualifier] = protector.create_protector(qualifier)
        ciphertext = sub_protectors[qualifier].protect(plaintext)
        return f"{Patterns.PROTECTED_MARKER}:{{{qualifier}}}:{{{ciphertext}}}"

    return replace


def protect_value(
    value: str,
    protector: DataProtector,
    protect_pattern: Optional[TokenPattern] = None,
) -> str:
    """
    Encrypt every Protect token in `value`, leaving other text untouched.

    With the default pattern a plaintext ends at the first closing brace, so
    it cannot itself contain "}": "Protect:{pa}ss}" encrypts "pa" and keeps
    "ss}" as plain text. Use a custom `protect_pattern` for such values.
    """
    pattern = protect_pattern or TokenPattern(Patterns.PROTECT)
    return pattern.substitute(value, _protected_replacement(pattern, protector))


def protect_data(
    data: Any,
    protector: DataProtector,
    protect_pattern: Optional[TokenPattern] = None,
) -> Any:
    """Recursively encrypt Protect tokens in the string values of dicts and lists."""
    pattern = protect_pattern or TokenPattern(Patterns.PROTECT)

    if isinstance(data, dict):
        return {key: protect_data(value, protector, pattern) for key, value in data.items()}
    elif isinstance(data, list):
        return [protect_data(item, protector, pattern) for item in data]
    elif isinstance(data, str):
        return protect_value(data, protector, pattern)
    return data


def _load(content: str, config_format: ConfigFormat) -> Any:
    if config_format == ConfigFormat.JSON:
        return json.loads(content)
    elif config_format == ConfigFormat.YAML:
        return yaml.safe_load(content) or {}

    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str
    parser.read_string(content)
    return {s: dict(parser[s]) for s in parser.sections()}


def _dump(data: Any, config_format: ConfigFormat) -> str:
    if config_format == ConfigFormat.JSON:
        return json.dumps(data, indent=2) + "\n"
    elif config_format == ConfigFormat.YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str
    for section, values in data.items():
        parser[section] = values
    output = io.StringIO()
    parser.write(output)
    return output.getvalue()


def protect_file(
    filepath: Union[str, Path],
    protector: DataProtector,
    protect_pattern: Optional[TokenPattern] = None,
    backup: bool = True,
) -> bool:
    """
    Encrypt every Protect token of a JSON, YAML or INI file in place.

    Args:
        filepath: Path to configuration file
        protector: Protector bound to the purpose used when reading the file back
        protect_pattern: Pattern of the tokens to encrypt
        backup: Create a timestamped backup before rewriting

    Returns:
        True if the file was rewritten, False if it contained nothing to protect
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    pattern = protect_pattern or TokenPattern(Patterns.PROTECT)
    config_format = detect_format(filepath)
    content = filepath.read_text(encoding="utf-8")

    if not pattern.contains_token(content):
        logger.info(f"Nothing to protect in {filepath}")
        return False

    data = protect_data(_load(content, config_format), protector, pattern)

    if backup:
        create_backup(filepath)

    atomic_write(filepath, _dump(data, config_format))
    logger.info(f"Protected config: {filepath}")
    return True


def atomic_write(filepath: Path, content: str) -> None:
    """Write file atomically with secure permissions."""
    filepath.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=filepath.parent,
        prefix=f".{filepath.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(fd, 'w', encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, Permissions.SECURE_FILE)
        os.replace(temp_path, filepath)

    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def create_backup(filepath: Path, max_backups: int = Permissions.MAX_BACKUPS) -> Path:
    """Copy `filepath` into .config_backups/ and prune the oldest backups."""
    backup_dir = filepath.parent / ".config_backups"
    backup_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_path = backup_dir / f"{filepath.name}.{timestamp}.bak"

    shutil.copy2(filepath, backup_path)
    os.chmod(backup_path, Permissions.SECURE_FILE)

    backups = sorted(backup_dir.glob(f"{filepath.name}.*.bak"), reverse=True)
    for old_backup in backups[max_backups:]:
        old_backup.unlink()

    return backup_path


def get_protection_status(filepath: Union[str, Path]) -> Dict[str, Any]:
    """
    Count Protect (still plaintext) and Protected (encrypted) tokens in a file.

    Returns:
        Dictionary with protection status details
    """
    filepath = Path(filepath)

    if not filepath.exists():
        return {'exists': False, 'protected': 0, 'unprotected': 0}

    content = filepath.read_text(encoding="utf-8")
    protected = sum(1 for _ in TokenPattern(Patterns.PROTECTED).finditer(content))
    unprotected = sum(1 for _ in TokenPattern(Patterns.PROTECT).finditer(content))

    return {
        'exists': True,
        'protected': protected,
        'unprotected': unprotected,
        'fully_protected': unprotected == 0,
    }
