from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, MappedAsDataclass, mapped_column


class TimestampMixin(MappedAsDataclass):
    """Mixin for adding created_at and updated_at timestamp columns.

    Both columns are timezone-aware and filled in UTC on the client side. They
    are excluded from the generated dataclass ``__init__`` so callers cannot
    forge them when constructing a model.

    ``updated_at`` is not maintained by a trigger; services that change a row
    (a new summary, a replaced embedding) set it explicitly. The student's
    document overview is ordered by this column.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        init=False,
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        default_factory=lambda: datetime.now(UTC),
        nullable=True,
        init=False,
    )
