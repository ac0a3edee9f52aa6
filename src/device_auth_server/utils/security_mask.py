def mask_sensitive_id(value: str | None) -> str:
    """Mask secrets and codes showing only first and last 4 characters."""
    if not value or len(value) <= 8:
        return "***MASKED***"
    return f"{value[:4]}...{value[-4:]}"


def mask_token(token: str | None) -> str:
    """Mask an access or refresh token showing only the last 4 characters."""
    if not token:
        return "***EMPTY***"
    if len(token) > 20:
        return f"...{token[-4:]}"
    return "***MASKED***"
