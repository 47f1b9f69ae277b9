class InvalidJobInput(ValueError):
    pass


def require_fields(payload: dict | None, names: tuple[str, ...]) -> dict[str, str]:
    """Pull string fields out of a job input; raise InvalidJobInput naming what's missing."""
    payload = payload or {}
    values = {name: str(payload.get(name) or "").strip() for name in names}
    missing = [name for name, v in values.items() if not v]
    if missing:
        raise InvalidJobInput(f"Invalid job input (missing {'/'.join(missing)})")
    return values
