"""ORM models. Importing this package registers every table on Base.metadata."""

from geotag.models.entry import Entry
from geotag.models.user import User

__all__ = ["Entry", "User"]
