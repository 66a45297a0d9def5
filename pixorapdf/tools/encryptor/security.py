"""Standard security handlers used to encrypt documents.

``rc4-40`` and ``rc4-128`` follow revisions 2 and 3 of the standard
security handler (MD5 key derivation, RC4 per-object keys). ``aes-256``
follows revision 6 (iterated SHA-2 password hashes, AES-256-CBC for strings
and streams, AES-256-ECB for ``/Perms``).

Permission bits are advisory: they are stored in the file and honoured by
compliant readers only. Nothing here enforces them.
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from hashlib import md5, sha256, sha384, sha512
from typing import Iterable

from cryptography.hazmat.decrepit.ciphers.algorithms import ARC4
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from pypdf.generic import (
    BooleanObject,
    ByteStringObject,
    DictionaryObject,
    NameObject,
    NumberObject,
)

from ...core.model import EncryptionAlgorithm
from ...exceptions import InvalidOptionsError

PASSWORD_PADDING = (
    b"(\xbfN^Nu\x8aAd\x00NV\xff\xfa\x01\x08" b"..\x00\xb6\xd0h>\x80/\x0c\xa9\xfedSiz"
)

# permission -> (bit, extra bit honoured from revision 3 on), 1-based
PERMISSION_BITS = {
    "print": (3, 12),
    "modify": (4, 11),
    "copy": (5, 10),
    "annotate": (6, 9),
}
_RESERVED_BITS = 0xFFFFF0C0


def permission_flags(permissions: Iterable[str], revision: int) -> int:
    """Return the signed 32-bit ``/P`` value granting *permissions*."""

    flags = _RESERVED_BITS
    for name in permissions:
        try:
            bit, extended = PERMISSION_BITS[name]
        except KeyError as exc:
            raise InvalidOptionsError(f"Unknown permission: {name!r}") from exc
        flags |= 1 << (bit - 1)
        if revision >= 3:
            flags |= 1 << (extended - 1)
    return flags - (1 << 32) if flags & 0x80000000 else flags


@dataclass(frozen=True, slots=True)
class SecuritySetup:
    """Key material and encryption dictionary produced for one document."""

    key: bytes
    dictionary: DictionaryObject
    permissions: int
    owner_hash: bytes
    user_hash: bytes


def _legacy_password(password: str) -> bytes:
    try:
        return password.encode("latin-1")
    except UnicodeEncodeError:
        return password.encode("utf-8")


def _pad(password: bytes) -> bytes:
    return (password + PASSWORD_PADDING)[:32]


def _rc4(key: bytes, data: bytes) -> bytes:
    encryptor = Cipher(ARC4(key), mode=None).encryptor()
    return encryptor.update(data) + encryptor.finalize()


class RC4SecurityHandler:
    """Security handler for revisions 2 (40-bit) and 3 (128-bit)."""

    def __init__(self, revision: int) -> None:
        self.revision = revision
        self.length = 5 if revision == 2 else 16

    def compute_o(self, owner_password: bytes, user_password: bytes) -> bytes:
        # Algorithm 3
        digest = md5(_pad(owner_password)).digest()
        if self.revision >= 3:
            for _ in range(50):
                digest = md5(digest).digest()
        key = digest[: self.length]
        result = _rc4(key, _pad(user_password))
        if self.revision >= 3:
            for i in range(1, 20):
                k = bytes(c ^ i for c in key)
                result = _rc4(k, result)
        return result

    def compute_encryption_key(self, password: bytes, o: bytes, p: int, docid: bytes) -> bytes:
        # Algorithm 2
        hash = md5(_pad(password))
        hash.update(o)
        hash.update(struct.pack("<l", p))
        hash.update(docid)
        result = hash.digest()
        if self.revision >= 3:
            for _ in range(50):
                result = md5(result[: self.length]).digest()
        return result[: self.length]

    def compute_u(self, key: bytes, docid: bytes) -> bytes:
        if self.revision == 2:
            # Algorithm 4
            return _rc4(key, PASSWORD_PADDING)
        # Algorithm 5
        result = _rc4(key, md5(PASSWORD_PADDING + docid).digest())
        for i in range(1, 20):
            k = bytes(c ^ i for c in key)
            result = _rc4(k, result)
        return result + bytes(16)

    def setup(
        self,
        user_password: str,
        owner_password: str,
        permissions: Iterable[str],
        docid: bytes,
    ) -> SecuritySetup:
        p = permission_flags(permissions, self.revision)
        o = self.compute_o(_legacy_password(owner_password), _legacy_password(user_password))
        key = self.compute_encryption_key(_legacy_password(user_password), o, p, docid)
        u = self.compute_u(key, docid)
        dictionary = DictionaryObject(
            {
                NameObject("/Filter"): NameObject("/Standard"),
                NameObject("/V"): NumberObject(1 if self.revision == 2 else 2),
                NameObject("/R"): NumberObject(self.revision),
                NameObject("/Length"): NumberObject(self.length * 8),
                NameObject("/O"): ByteStringObject(o),
                NameObject("/U"): ByteStringObject(u),
                NameObject("/P"): NumberObject(p),
            }
        )
        return SecuritySetup(key=key, dictionary=dictionary, permissions=p, owner_hash=o, user_hash=u)

    def encrypt(self, key: bytes, objid: int, genno: int, data: bytes) -> bytes:
        seed = key + struct.pack("<L", objid)[:3] + struct.pack("<L", genno)[:2]
        object_key = md5(seed).digest()[: min(len(key) + 5, 16)]
        return _rc4(object_key, data)


class AESV3SecurityHandler:
    """Security handler for revision 6 (AES-256)."""

    revision = 6

    @staticmethod
    def _normalize_password(password: str) -> bytes:
        return password.encode("utf-8")[:127]

    @staticmethod
    def _aes_cbc_encrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return encryptor.update(data) + encryptor.finalize()

    @staticmethod
    def _bytes_mod_3(input_bytes: bytes) -> int:
        # 256 is 1 mod 3, so we can just sum 'em
        return sum(b % 3 for b in input_bytes) % 3

    def _password_hash(self, password: bytes, salt: bytes, vector: bytes | None = None) -> bytes:
        # Algorithm 2.B
        initial_hash = sha256(password)
        initial_hash.update(salt)
        if vector is not None:
            initial_hash.update(vector)
        k = initial_hash.digest()
        hashes = (sha256, sha384, sha512)
        round_no = last_byte_val = 0
        while round_no < 64 or last_byte_val > round_no - 32:
            k1 = (password + k + (vector or b"")) * 64
            e = self._aes_cbc_encrypt(key=k[:16], iv=k[16:32], data=k1)
            next_hash = hashes[self._bytes_mod_3(e[:16])]
            k = next_hash(e).digest()
            last_byte_val = e[len(e) - 1]
            round_no += 1
        return k[:32]

    def _wrap_key(self, password: bytes, key_salt: bytes, vector: bytes | None, file_key: bytes) -> bytes:
        intermediate = self._password_hash(password, key_salt, vector)
        return self._aes_cbc_encrypt(intermediate, bytes(16), file_key)

    def setup(
        self,
        user_password: str,
        owner_password: str,
        permissions: Iterable[str],
        docid: bytes,
    ) -> SecuritySetup:
        file_key = os.urandom(32)
        user = self._normalize_password(user_password)
        owner = self._normalize_password(owner_password)

        # Algorithm 8
        validation_salt, key_salt = os.urandom(8), os.urandom(8)
        u = self._password_hash(user, validation_salt) + validation_salt + key_salt
        ue = self._wrap_key(user, key_salt, None, file_key)

        # Algorithm 9
        validation_salt, key_salt = os.urandom(8), os.urandom(8)
        o = self._password_hash(owner, validation_salt, u) + validation_salt + key_salt
        oe = self._wrap_key(owner, key_salt, u, file_key)

        # Algorithm 10
        p = permission_flags(permissions, self.revision)
        perms_block = struct.pack("<l", p) + b"\xff\xff\xff\xff" + b"T" + b"adb" + os.urandom(4)
        encryptor = Cipher(algorithms.AES(file_key), modes.ECB()).encryptor()
        perms = encryptor.update(perms_block) + encryptor.finalize()

        crypt_filter = DictionaryObject(
            {
                NameObject("/Type"): NameObject("/CryptFilter"),
                NameObject("/CFM"): NameObject("/AESV3"),
                NameObject("/AuthEvent"): NameObject("/DocOpen"),
                NameObject("/Length"): NumberObject(32),
            }
        )
        dictionary = DictionaryObject(
            {
                NameObject("/Filter"): NameObject("/Standard"),
                NameObject("/V"): NumberObject(5),
                NameObject("/R"): NumberObject(self.revision),
                NameObject("/Length"): NumberObject(256),
                NameObject("/CF"): DictionaryObject({NameObject("/StdCF"): crypt_filter}),
                NameObject("/StmF"): NameObject("/StdCF"),
                NameObject("/StrF"): NameObject("/StdCF"),
                NameObject("/O"): ByteStringObject(o),
                NameObject("/U"): ByteStringObject(u),
                NameObject("/OE"): ByteStringObject(oe),
                NameObject("/UE"): ByteStringObject(ue),
                NameObject("/P"): NumberObject(p),
                NameObject("/Perms"): ByteStringObject(perms),
                NameObject("/EncryptMetadata"): BooleanObject(True),
            }
        )
        return SecuritySetup(key=file_key, dictionary=dictionary, permissions=p, owner_hash=o, user_hash=u)

    def encrypt(self, key: bytes, objid: int, genno: int, data: bytes) -> bytes:
        initialization_vector = os.urandom(16)
        padder = padding.PKCS7(128).padder()
        padded = padder.update(data) + padder.finalize()
        return initialization_vector + self._aes_cbc_encrypt(key, initialization_vector, padded)


SECURITY_HANDLERS = {
    EncryptionAlgorithm.RC4_40: lambda: RC4SecurityHandler(2),
    EncryptionAlgorithm.RC4_128: lambda: RC4SecurityHandler(3),
    EncryptionAlgorithm.AES_256: AESV3SecurityHandler,
}


def create_security_handler(algorithm: EncryptionAlgorithm) -> RC4SecurityHandler | AESV3SecurityHandler:
    return SECURITY_HANDLERS[EncryptionAlgorithm(algorithm)]()


__all__ = [
    "PASSWORD_PADDING",
    "PERMISSION_BITS",
    "SecuritySetup",
    "RC4SecurityHandler",
    "AESV3SecurityHandler",
    "create_security_handler",
    "permission_flags",
]
