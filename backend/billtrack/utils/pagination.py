"""1-based page arithmetic shared by every list endpoint."""

from billtrack.config import settings
from billtrack.middleware.exceptions import ValidationFailure


def page_window(page_index: int | None, page_size: int | None) -> tuple[int, int, int]:
    """Return (page_index, page_size, offset), rejecting out-of-range values."""
    page_index = 1 if page_index is None else page_index
    page_size = settings.default_page_size if page_size is None else page_size

    if page_index < 1:
        raise ValidationFailure("page_index must be 1 or greater")
    if not 1 <= page_size <= settings.max_page_size:
        raise ValidationFailure(
            f"page_size must be between 1 and {settings.max_page_size}"
        )
    return page_index, page_size, (page_index - 1) * page_size
