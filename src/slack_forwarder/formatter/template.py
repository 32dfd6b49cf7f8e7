"""Printf-style templates bound to an ordered list of record keys.

A template pairs a ``%``-format string with the record keys whose values
fill its placeholders, in order. Compatibility between the two is checked
once with a dry-run substitution when the template is compiled, so
rendering a record never raises.

Example:
    ```python
    template = Template.compile("%s-%s", ["a", "b"])
    template.render({"a": "x", "b": "y"})  # "x-y"
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from slack_forwarder.formatter.keys import resolve_keys

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

# Values used for the dry-run substitutions; a format must accept any text
TRIAL_VALUES = ("1", "", "multi-character value")


class TemplateArityError(ValueError):
    """Raised when a format string does not take exactly one value per key."""

    def __init__(self, fmt: str, keys: Sequence[str], option: str | None = None) -> None:
        self.fmt = fmt
        self.keys = tuple(keys)
        self.option = option
        subject = f"`{option}` and `{option}_keys`" if option else "format and keys"
        super().__init__(
            f"string specifier '%s' for {subject} specification mismatch "
            f"(format {fmt!r}, {len(self.keys)} key(s))"
        )


@dataclass(frozen=True)
class Template:
    """A compiled format string and its ordered record keys.

    Attributes:
        fmt: The format string.
        keys: Record keys substituted positionally, or None for a literal
            template that renders ``fmt`` verbatim.
    """

    fmt: str
    keys: tuple[str, ...] | None = None

    @classmethod
    def compile(
        cls,
        fmt: str,
        keys: Sequence[str],
        *,
        option: str | None = None,
    ) -> Template:
        """Compile a format string against a list of keys.

        Args:
            fmt: Format string with ``%s``-style placeholders.
            keys: Record keys, one per placeholder.
            option: Configuration option name used in the error message.

        Returns:
            The compiled Template.

        Raises:
            TemplateArityError: If ``fmt`` does not accept exactly
                ``len(keys)`` arbitrary text values.
        """
        keys = tuple(keys)
        try:
            for value in TRIAL_VALUES:
                fmt % ((value,) * len(keys))
        except (TypeError, ValueError) as e:
            raise TemplateArityError(fmt, keys, option) from e
        return cls(fmt=fmt, keys=keys)

    @classmethod
    def literal(cls, text: str) -> Template:
        """Create a template that always renders ``text`` unchanged."""
        return cls(fmt=text, keys=None)

    @property
    def is_literal(self) -> bool:
        return self.keys is None

    def render(self, record: Mapping[str, Any]) -> str:
        """Render the template for one record."""
        if self.keys is None:
            return self.fmt
        return self.fmt % resolve_keys(record, self.keys)
