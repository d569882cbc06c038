"""
Configuration loading for the file transfer client.

config.yaml holds client settings; transfer.info holds the server address,
the username to register with and the file to send, one per line:

    127.0.0.1:1234
    alice1
    path/to/file.txt
"""

import os
from dataclasses import dataclass

import yaml

from protocol.errors import InvalidInputError

DEFAULT_CONFIG = {
    "transfer_info": "transfer.info",
    "client_info": "me.info",
    "max_retries": 3,
    "socket_timeout": None,
    "log_level": "INFO",
}


@dataclass(frozen=True)
class TransferInfo:
    host: str
    port: int
    username: str = ""
    file_path: str = ""


def load_config(path="config.yaml"):
    """
    Read config.yaml and merge it over the defaults. A missing file yields
    the defaults; unknown keys and wrongly typed values are rejected.
    """
    config = dict(DEFAULT_CONFIG)
    if not os.path.exists(path):
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidInputError(f"{path} is not valid YAML: {e}") from e
    if not isinstance(loaded, dict):
        raise InvalidInputError(f"{path} must contain a mapping of settings.")

    for key, value in loaded.items():
        if key not in DEFAULT_CONFIG:
            raise InvalidInputError(f"Unknown config key '{key}' in {path}")
        config[key] = value

    if not isinstance(config["max_retries"], int) or config["max_retries"] < 0:
        raise InvalidInputError("max_retries must be a non-negative integer")
    timeout = config["socket_timeout"]
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        raise InvalidInputError("socket_timeout must be a positive number or null")
    return config


def parse_address(line):
    host, sep, port = line.strip().rpartition(":")
    if not sep:
        raise InvalidInputError(f"Invalid server address '{line.strip()}': missing separator ':'")
    if not host:
        raise InvalidInputError(f"Invalid server address '{line.strip()}': missing host")
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise InvalidInputError(f"Invalid server port '{port}'")
    return host, int(port)


def parse_transfer_info(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = [line.strip() for line in f.read().splitlines()]
    except OSError as e:
        raise InvalidInputError(f"Couldn't open {path}: {e}") from e

    if not lines or not lines[0]:
        raise InvalidInputError(f"Couldn't read server address from {path}")
    host, port = parse_address(lines[0])
    username = lines[1] if len(lines) > 1 else ""
    file_path = lines[2] if len(lines) > 2 else ""
    return TransferInfo(host, port, username, file_path)
