"""Exceptions raised by the patch engine."""

from campaign_assist.models.proposal import PatchType


class PatchParseError(ValueError):
    """Raised when patch text is malformed, before any application is attempted."""


class PatchApplicationError(Exception):
    """Raised when a patch cannot be applied to a field's current value.

    Attributes:
        message: Human-readable reason.
        field: Name of the field being patched ("" when applied outside a batch).
        patch_type: Formalism of the failed patch.
        cause: Underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str = "",
        patch_type: PatchType,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.patch_type = patch_type
        self.cause = cause

    def __repr__(self) -> str:
        return (
            f"PatchApplicationError({self.message!r}, field={self.field!r}, "
            f"patch_type={self.patch_type.value!r})"
        )

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "patch_type": self.patch_type.value, "message": self.message}
