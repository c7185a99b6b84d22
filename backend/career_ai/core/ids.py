import secrets
import string

ID_ALPHABET = string.ascii_letters + string.digits + "_-"


def generate_id(length: int = 12) -> str:
    """Generate a URL-safe random id for share links and stored records."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))
