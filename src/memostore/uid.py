import re

# 1-32 chars of [a-zA-Z0-9-], never starting or ending with a hyphen
UID_MATCHER = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,30}[a-zA-Z0-9])?$")


def is_valid_uid(value) -> bool:
    """Check a candidate memo UID against the identifier syntax."""
    if not isinstance(value, str):
        return False
    return UID_MATCHER.fullmatch(value) is not None
