import hashlib
import hmac
import re
import secrets

CODE_LENGTH = 4
SALT_BYTES = 16

_CODE_PATTERN = re.compile(r"[0-9]{%d}" % CODE_LENGTH)


def generate_attendance_code() -> str:
    """Generate a zero-padded 4-digit attendance code from the OS CSPRNG"""
    return str(secrets.randbelow(10 ** CODE_LENGTH)).zfill(CODE_LENGTH)


def generate_salt() -> str:
    """Random 16-byte salt, hex encoded"""
    return secrets.token_hex(SALT_BYTES)


def hash_code(code: str, salt: str) -> str:
    """SHA256 of salt + code"""
    return hashlib.sha256(f"{salt}{code}".encode()).hexdigest()


def verify_code_hash(submitted_code: str, stored_hash: str, salt: str) -> bool:
    """Verify a submitted code against its stored hash"""
    if not stored_hash or not salt:
        return False
    return hmac.compare_digest(hash_code(submitted_code, salt), stored_hash)


def is_valid_code_format(code) -> bool:
    return isinstance(code, str) and bool(_CODE_PATTERN.fullmatch(code))
