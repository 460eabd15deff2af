"""
Redaction of sensitive values in rendered output.

Values of variables marked ``sensitive = true`` flow into resource
attributes through interpolation, so the rendered data is scrubbed
before it is shown.
"""

from typing import Any, Iterable, List, Optional, Set, Union

REDACTED = "[REDACTED]"

# Characters that continue a number token, e.g. "t2.micro" or "ami-12"
_TOKEN_CHARS = frozenset("0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ._-")


def _number_text(number: Union[int, float]) -> str:
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


class OutputRedactor:
    """
    Redacts sensitive values from rendered output.

    Strings are hidden wherever they occur. Numbers are hidden only as
    whole values or as whole tokens inside text, so a sensitive ``2``
    leaves ``t2.micro`` alone.

    Example:
        >>> redactor = OutputRedactor(["secret123"])
        >>> redactor.redact("Connecting with key: secret123")
        'Connecting with key: [REDACTED]'
    """

    def __init__(self, sensitive_values: Optional[Iterable[Union[str, int, float]]] = None):
        """
        Initialize redactor with sensitive values.

        Args:
            sensitive_values: Strings and numbers to hide
        """
        self.sensitive_values: List[str] = []
        self.sensitive_numbers: Set[Union[int, float]] = set()

        if sensitive_values:
            self.add_sensitive_values(sensitive_values)

    def add_sensitive_values(self, sensitive_values: Iterable[Union[str, int, float]]):
        """
        Add sensitive values to redaction list.

        Empty strings are ignored. Longer strings are replaced first so a
        value containing another is not left half-redacted.
        """
        for value in sensitive_values:
            if isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                self.sensitive_numbers.add(value)
            elif value and value not in self.sensitive_values:
                self.sensitive_values.append(value)
        self.sensitive_values.sort(key=len, reverse=True)

    def redact(self, text: str) -> str:
        """
        Replace sensitive values in text with [REDACTED].

        Security note:
        - Uses exact string matching (not regex) to avoid ReDoS attacks
        - Case-sensitive matching
        - Replaces all occurrences

        Args:
            text: Text to redact

        Returns:
            Text with sensitive values replaced by [REDACTED]
        """
        if not text:
            return text

        redacted = text

        for sensitive_value in self.sensitive_values:
            # Simple string replacement (not regex, to avoid ReDoS)
            redacted = redacted.replace(sensitive_value, REDACTED)

        for number in self.sensitive_numbers:
            redacted = _replace_token(redacted, _number_text(number))

        return redacted

    def is_sensitive_number(self, value: Any) -> bool:
        """Check whether a plain number is one of the sensitive values."""
        return (
            isinstance(value, (int, float))
            and not isinstance(value, bool)
            and value in self.sensitive_numbers
        )

    def redact_data(self, data: Any) -> Any:
        """Redact strings and sensitive numbers inside nested lists and dicts."""
        if isinstance(data, str):
            return self.redact(data)
        if self.is_sensitive_number(data):
            return REDACTED
        if isinstance(data, list):
            return [self.redact_data(item) for item in data]
        if isinstance(data, dict):
            return {key: self.redact_data(value) for key, value in data.items()}
        return data

    def clear(self):
        """Forget all sensitive values."""
        self.sensitive_values.clear()
        self.sensitive_numbers.clear()


def _replace_token(text: str, token: str) -> str:
    """Replace occurrences of token that are not part of a longer word."""
    pieces = []
    start = 0
    position = text.find(token)
    while position != -1:
        end = position + len(token)
        before = text[position - 1] if position > 0 else ""
        after = text[end] if end < len(text) else ""
        if before not in _TOKEN_CHARS and after not in _TOKEN_CHARS:
            pieces.append(text[start:position])
            pieces.append(REDACTED)
            start = end
        position = text.find(token, position + 1)
    pieces.append(text[start:])
    return "".join(pieces)
