import uuid


def generate_id() -> str:
    return str(uuid.uuid4())


def is_uuid4(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parsed = uuid.UUID(value)
    except ValueError:
        return False
    return parsed.version == 4 and str(parsed) == value.lower()


def has_duplicates(values: list) -> bool:
    return len(set(values)) != len(values)
