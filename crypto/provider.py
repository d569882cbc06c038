import os

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding as sym_padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from protocol.constants import PUBLIC_KEY_SIZE, SYMMETRIC_KEY_SIZE
from protocol.errors import CryptoError

RSA_KEY_BITS = 1024
RSA_PUBLIC_EXPONENT = 65537
AES_BLOCK_BITS = 128

# rsaEncryption, 1.2.840.113549.1.1.1
RSA_ENCRYPTION_OID = b'\x06\x09\x2a\x86\x48\x86\xf7\x0d\x01\x01\x01'


def _der_length(length):
    if length < 0x80:
        return bytes([length])
    raw = length.to_bytes((length.bit_length() + 7) // 8, 'big')
    return bytes([0x80 | len(raw)]) + raw


def _der(tag, content):
    return bytes([tag]) + _der_length(len(content)) + content


class KeypairHandle:
    """Opaque reference to an RSA keypair held by the CryptoProvider."""

    def __init__(self, private_key):
        self._private_key = private_key


class CryptoProvider:
    """
    RSA and AES operations used by the session.

    The public key travels as a 160 byte X.509 SubjectPublicKeyInfo whose
    rsaEncryption algorithm identifier has no parameters. Symmetric
    encryption is AES-CBC with a zero IV and PKCS7 padding.
    """

    def generate_keypair(self) -> KeypairHandle:
        try:
            private_key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT, key_size=RSA_KEY_BITS)
        except (ValueError, UnsupportedAlgorithm) as e:
            raise CryptoError(f"RSA key generation failed: {e}") from e
        return KeypairHandle(private_key)

    def public_key_bytes(self, handle: KeypairHandle) -> bytes:
        pkcs1 = handle._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.PKCS1)
        algorithm = _der(0x30, RSA_ENCRYPTION_OID)
        key = _der(0x03, b'\x00' + pkcs1)
        blob = _der(0x30, algorithm + key)
        if len(blob) != PUBLIC_KEY_SIZE:
            raise CryptoError(
                f"Invalid public key length {len(blob)}, expected {PUBLIC_KEY_SIZE}.")
        return blob

    def decrypt_with_private_key(self, handle: KeypairHandle, ciphertext: bytes) -> bytes:
        try:
            return handle._private_key.decrypt(
                ciphertext,
                padding.OAEP(
                    mgf=padding.MGF1(algorithm=hashes.SHA1()),
                    algorithm=hashes.SHA1(),
                    label=None))
        except ValueError as e:
            raise CryptoError(f"Couldn't decrypt symmetric key: {e}") from e

    def encrypt_with_symmetric_key(self, key: bytes, plaintext: bytes) -> bytes:
        padder = sym_padding.PKCS7(AES_BLOCK_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(bytes(16))).encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def random_symmetric_key(self) -> bytes:
        return os.urandom(SYMMETRIC_KEY_SIZE)

    def export_private_key(self, handle: KeypairHandle) -> bytes:
        return handle._private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption())

    def load_private_key(self, der: bytes) -> KeypairHandle:
        try:
            private_key = serialization.load_der_private_key(der, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise CryptoError(f"Couldn't parse private key: {e}") from e
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise CryptoError("Stored private key is not an RSA key.")
        return KeypairHandle(private_key)
