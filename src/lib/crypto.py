"""Password-based authenticated encryption (PBKDF2-SHA256 + AES-256-GCM).

Blob layout (v1):
	[1-byte version][16-byte salt][12-byte nonce][ciphertext][16-byte tag]

The header (version, salt, nonce) is bound to the tag as associated data, so
altering any byte of the blob makes decryption fail with IntegrityError.
"""
from __future__ import annotations
import base64, binascii, secrets
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.backends import default_backend
from config.settings import (
	BLOB_VERSION, SALT_LENGTH, KEY_LENGTH, NONCE_LENGTH, AUTH_TAG_LENGTH, kdf_iterations
)

HEADER_LENGTH = 1 + SALT_LENGTH + NONCE_LENGTH
MIN_BLOB_LENGTH = HEADER_LENGTH + AUTH_TAG_LENGTH

class CryptoError(Exception):
	pass

class IntegrityError(CryptoError):
	"""Ciphertext could not be authenticated (wrong password or tampered data)."""

class JournalCrypto:
	def __init__(self, iterations: int | None = None):
		if iterations is None:
			iterations = kdf_iterations()
		if iterations < 1:
			raise CryptoError("Iterations must be positive")
		self.iterations = iterations
		self._backend = default_backend()

	def generate_salt(self) -> bytes:
		return secrets.token_bytes(SALT_LENGTH)

	def derive_key(self, password: str, salt: bytes) -> bytes:
		if not password:
			raise CryptoError("Password empty")
		kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=KEY_LENGTH, salt=salt, iterations=self.iterations, backend=self._backend)
		return kdf.derive(password.encode('utf-8'))

	def encrypt_bytes(self, data: bytes, password: str) -> bytes:
		salt = self.generate_salt()
		key = self.derive_key(password, salt)
		nonce = secrets.token_bytes(NONCE_LENGTH)
		header = bytes([BLOB_VERSION]) + salt + nonce
		enc = Cipher(algorithms.AES(key), modes.GCM(nonce), backend=self._backend).encryptor()
		enc.authenticate_additional_data(header)
		ct = enc.update(bytes(data)) + enc.finalize()
		return header + ct + enc.tag

	def decrypt_bytes(self, blob: bytes, password: str) -> bytes:
		if not password:
			raise CryptoError("Password empty")
		blob = bytes(blob)
		if len(blob) < MIN_BLOB_LENGTH:
			raise IntegrityError("Ciphertext too short")
		if blob[0] != BLOB_VERSION:
			raise IntegrityError(f"Unsupported blob version: {blob[0]}")
		header = blob[:HEADER_LENGTH]
		salt = header[1:1 + SALT_LENGTH]; nonce = header[1 + SALT_LENGTH:]
		ct = blob[HEADER_LENGTH:-AUTH_TAG_LENGTH]; tag = blob[-AUTH_TAG_LENGTH:]
		key = self.derive_key(password, salt)
		dec = Cipher(algorithms.AES(key), modes.GCM(nonce, tag), backend=self._backend).decryptor()
		dec.authenticate_additional_data(header)
		# finalize() verifies the tag in constant time; nothing is returned before it passes
		try:
			plain = dec.update(ct)
			plain += dec.finalize()
		except InvalidTag as e:
			raise IntegrityError("Authentication failed: wrong password or tampered data") from e
		return plain

	def encrypt(self, plaintext: str, password: str) -> str:
		"""Encrypt text and return the blob as base64."""
		if not isinstance(plaintext, str):
			raise CryptoError("Plaintext must be str")
		return base64.b64encode(self.encrypt_bytes(plaintext.encode('utf-8'), password)).decode('ascii')

	def decrypt(self, token: str, password: str) -> str:
		"""Decrypt a base64 token produced by `encrypt`.

		Malformed or non-canonical base64 is treated as tampering.
		"""
		if not isinstance(token, str):
			raise CryptoError("Token must be str")
		try:
			blob = base64.b64decode(token.encode('ascii'), validate=True)
		except (binascii.Error, UnicodeEncodeError) as e:
			raise IntegrityError("Ciphertext is not valid base64") from e
		# b64decode ignores the unused low bits of the last symbol
		if base64.b64encode(blob).decode('ascii') != token:
			raise IntegrityError("Ciphertext is not canonical base64")
		plain = self.decrypt_bytes(blob, password)
		try:
			return plain.decode('utf-8')
		except UnicodeDecodeError as e:  # pragma: no cover (authenticated payloads are always utf-8)
			raise IntegrityError("Decrypted payload is not valid UTF-8") from e
