"""
RRN Redaction Module
Masks resident registration numbers that would otherwise leave the intake path
"""

import re
from typing import Pattern


class RrnRedactor:
    """
    Masks resident registration numbers in free text.

    Patterns masked:
    - Full RRNs (6 digits, optional hyphen or space, 7 digits)
    - Long digit runs that start with a plausible RRN (strict mode)

    The first back digit is kept, so a masked value still renders as
    `900101-1******`.
    """

    def __init__(self, strict: bool = True):
        """
        Args:
            strict: If True, also mask bare 13-digit runs
        """
        self.strict = strict
        self._patterns = self._compile_patterns()

    def _compile_patterns(self) -> list[tuple[str, Pattern]]:
        """Compile regex patterns for RRN detection"""
        patterns = [
            # 900101-1234567, 900101 1234567
            ("RRN", re.compile(
                r'(?<!\d)(\d{6})[-\s](\d)\d{6}(?!\d)'
            )),
        ]

        if self.strict:
            patterns.extend([
                # 9001011234567
                ("RRN_BARE", re.compile(
                    r'(?<!\d)(\d{6})(\d)\d{6}(?!\d)'
                )),
            ])

        return patterns

    def redact(self, text: str) -> str:
        """
        Mask RRNs in text.

        Args:
            text: Input text potentially containing RRNs

        Returns:
            Text with every RRN rendered as FFFFFF-X******
        """
        if not text:
            return text

        redacted = text
        for _name, pattern in self._patterns:
            redacted = pattern.sub(r'\1-\2******', redacted)

        return redacted

    def redact_with_stats(self, text: str) -> tuple[str, dict[str, int]]:
        """
        Mask RRNs and return statistics.

        Returns:
            Tuple of (redacted_text, {pattern_name: count})
        """
        if not text:
            return text, {}

        stats = {}
        redacted = text

        for name, pattern in self._patterns:
            redacted, count = pattern.subn(r'\1-\2******', redacted)
            if count:
                stats[name] = count

        return redacted, stats


# Default redactor instance
default_redactor = RrnRedactor(strict=True)


def redact_rrn(text: str) -> str:
    """Convenience function to mask RRNs in text"""
    return default_redactor.redact(text)
