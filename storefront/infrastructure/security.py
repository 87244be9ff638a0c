import hashlib
import hmac
import secrets

from storefront.application.interfaces import PasswordHasher


class PBKDF2PasswordHasher(PasswordHasher):
    """Hashes stored as ``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>``"""

    algorithm = "pbkdf2_sha256"

    def __init__(self, iterations: int = 260_000):
        self._iterations = iterations

    def hash(self, password: str) -> str:
        salt = secrets.token_hex(16)
        digest = self._digest(password, salt, self._iterations)
        return f"{self.algorithm}${self._iterations}${salt}${digest}"

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            algorithm, iterations, salt, expected = password_hash.split("$")
        except ValueError:
            return False
        if algorithm != self.algorithm:
            return False
        actual = self._digest(password, salt, int(iterations))
        return hmac.compare_digest(actual, expected)

    @staticmethod
    def _digest(password: str, salt: str, iterations: int) -> str:
        return hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), iterations).hex()
