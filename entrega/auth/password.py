import bcrypt


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica a senha contra um hash bcrypt."""
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode("utf-8")
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password)
    except ValueError:
        # Hash corrompido/formato inesperado
        return False


def get_password_hash(password: str) -> str:
    """Gera hash bcrypt para a senha."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")
