# app/models/__init__.py
from app.db.base import Base  # noqa: F401

# order matters due to FKs
from . import organization  # noqa: F401
from . import user          # noqa: F401
from . import employee      # noqa: F401
from . import document      # noqa: F401
from . import notification  # noqa: F401
