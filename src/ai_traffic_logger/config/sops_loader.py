"""
Config file reader for the traffic logger.

config.yaml is parsed with PyYAML. A file named *.enc.yaml (or *.enc.yml)
holds the site secret encrypted with SOPS and is piped through `sops -d`
before parsing, so the secret never has to sit on disk in clear text.
"""

import logging
import subprocess
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

SOPS_SUFFIXES = (".enc.yaml", ".enc.yml")


class ConfigurationError(Exception):
    """A config file could not be decrypted or is not a YAML mapping."""

    pass


def is_sops_encrypted(file_path: Path) -> bool:
    return file_path.name.endswith(SOPS_SUFFIXES)


def _parse_mapping(text: str, source: Path) -> dict[str, Any]:
    try:
        config = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {source}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Config file {source} must contain a mapping, "
            f"got {type(config).__name__}"
        )
    return config


def decrypt_sops_file(file_path: Path) -> str:
    """
    Decrypt a SOPS file and return the plaintext YAML.

    Raises:
        ConfigurationError: If sops is missing or decryption fails
    """
    try:
        result = subprocess.run(
            ["sops", "-d", str(file_path)],
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Cannot decrypt {file_path}: the sops binary is not installed"
        ) from e
    except subprocess.CalledProcessError as e:
        raise ConfigurationError(
            f"SOPS decryption of {file_path} failed: {e.stderr.strip()}"
        ) from e

    logger.debug(f"Decrypted config file {file_path}")
    return result.stdout


def read_config_file(file_path: Path) -> dict[str, Any]:
    """
    Read a config file into the dictionary Settings.from_dict expects.

    Args:
        file_path: Path to config.yaml or a SOPS-encrypted *.enc.yaml

    Returns:
        Configuration dictionary (empty for an empty file)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If decryption fails or the YAML is not a mapping
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    if is_sops_encrypted(file_path):
        text = decrypt_sops_file(file_path)
    else:
        text = file_path.read_text(encoding="utf-8")

    return _parse_mapping(text, file_path)
