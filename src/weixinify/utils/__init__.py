from .boundary import new_boundary
from .redact import redact

__all__ = [
    "new_boundary",
    "redact",
]
