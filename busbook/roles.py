from enum import Enum

class Role(str, Enum):
    """Enumerates every role recognised by the platform.

    Using an Enum avoids typos when referring to roles across the code-base
    while still being JSON-serialisable (inherits from *str*).
    """

    admin = "admin"
    passenger = "passenger"
