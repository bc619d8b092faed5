from passlib.context import CryptContext

# admin credentials are bcrypt hashed before they reach the database
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto"
)

MIN_PASSWORD_LENGTH = 6
MAX_BCRYPT_BYTES = 72


def hash_password(password: str) -> str:
    """
    Hash an admin password.
    Rejects passwords shorter than six characters or longer than bcrypt accepts.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_BCRYPT_BYTES:
        raise ValueError("Password too long (max 72 bytes)")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    if len(plain_password.encode("utf-8")) > MAX_BCRYPT_BYTES:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # unknown or malformed legacy hash
        return False
