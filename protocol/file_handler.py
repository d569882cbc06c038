import binascii

from protocol.errors import ClientIOError, InvalidInputError


def read_file(path):
    if not path:
        raise InvalidInputError("File path cannot be empty.")
    try:
        with open(path, 'rb') as f:
            return f.read()
    except FileNotFoundError as e:
        raise InvalidInputError(f"File '{path}' does not exist.") from e
    except OSError as e:
        raise ClientIOError(f"Couldn't read '{path}': {e}") from e


def crc32_of(data):
    # Same CRC-32 the server computes over the decrypted content.
    return binascii.crc32(data) & 0xFFFFFFFF


def file_crc(path):
    return crc32_of(read_file(path))
