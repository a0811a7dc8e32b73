"""
Decoding of cheatcode argument buffers and encoding of values written back to the
interpreter memory. Follows the Cairo `Serde` layout: felts are positional, arrays and
byte arrays are length-prefixed and enums are prefixed with their variant index.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, TypeVar

from .constants import BYTE_ARRAY_MAGIC, FIELD_PRIME
from .util import CheatcodeDecodeError

T = TypeVar("T")

BYTES_IN_WORD = 31
MAX_U64 = 2**64 - 1

# printable ASCII and whitespace
SHORT_STRING_BYTES = frozenset(range(0x20, 0x7F)) | frozenset(b"\t\n\x0c\r")

OPTION_SOME = 0
OPTION_NONE = 1

RESULT_OK = 0
RESULT_ERR = 1


@dataclass(frozen=True)
class FeeSettings:
    """Fee settings a script passes along with each transaction"""

    max_fee: Optional[int] = None


class BufferReader:
    """
    Reads positional values out of a cheatcode argument buffer.
    Every read consumes values, so the reads have to follow the order in which
    the script serialized them.
    """

    def __init__(self, buffer: Sequence[int]):
        self._buffer = list(buffer)
        self._position = 0

    @property
    def remaining(self) -> int:
        """Number of values not consumed yet"""
        return len(self._buffer) - self._position

    def read_felt(self) -> int:
        """Reads a single felt"""
        if self._position >= len(self._buffer):
            raise CheatcodeDecodeError(
                f"Failed to read argument at position {self._position}: buffer too short"
            )
        value = self._buffer[self._position]
        if not 0 <= value < FIELD_PRIME:
            raise CheatcodeDecodeError(
                f"Value {value} at position {self._position} is not a felt"
            )
        self._position += 1
        return value

    def read_bool(self) -> bool:
        """Reads a felt that must be 0 or 1"""
        value = self.read_felt()
        if value not in (0, 1):
            raise CheatcodeDecodeError(f"Expected a bool, got: {value}")
        return bool(value)

    def read_u64(self) -> int:
        """Reads a felt that must fit into 64 bits"""
        value = self.read_felt()
        if value > MAX_U64:
            raise CheatcodeDecodeError(f"Value {value} does not fit into u64")
        return value

    def read_array(self) -> List[int]:
        """Reads a length-prefixed array of felts"""
        length = self.read_felt()
        if length > self.remaining:
            raise CheatcodeDecodeError(
                f"Array length {length} exceeds the remaining buffer size {self.remaining}"
            )
        return [self.read_felt() for _ in range(length)]

    def read_option(self, read_value: Callable[[], T]) -> Optional[T]:
        """Reads `Option<T>`, using `read_value` for the `Some` payload"""
        variant = self.read_felt()
        if variant == OPTION_SOME:
            return read_value()
        if variant == OPTION_NONE:
            return None
        raise CheatcodeDecodeError(f"Invalid Option variant: {variant}")

    def read_byte_array(self) -> str:
        """Reads a Cairo `ByteArray` and decodes it as UTF-8"""
        words = self.read_array()
        pending_word = self.read_felt()
        pending_word_len = self.read_felt()
        if pending_word_len >= BYTES_IN_WORD:
            raise CheatcodeDecodeError(
                f"Invalid ByteArray pending word length: {pending_word_len}"
            )

        try:
            raw = b"".join(word.to_bytes(BYTES_IN_WORD, "big") for word in words)
            raw += pending_word.to_bytes(pending_word_len, "big")
            return raw.decode("utf-8")
        except (OverflowError, UnicodeDecodeError) as error:
            raise CheatcodeDecodeError(f"Invalid ByteArray: {error}") from error

    def read_short_string(self) -> str:
        """Reads a felt holding a Cairo short string"""
        value = self.read_felt()
        text = as_cairo_short_string(value)
        if text is None:
            raise CheatcodeDecodeError(f"Value {hex(value)} is not a valid short string")
        return text

    def read_fee_settings(self) -> FeeSettings:
        """Reads `FeeSettings { max_fee: Option<felt252> }`"""
        return FeeSettings(max_fee=self.read_option(self.read_felt))

    def assert_consumed(self):
        """Raises if the handler did not read the entire buffer"""
        if self.remaining:
            raise CheatcodeDecodeError(
                f"{self.remaining} unexpected trailing values in the argument buffer"
            )


def serialize_byte_array(text: str) -> List[int]:
    """Serializes `text` as a Cairo `ByteArray`"""
    raw = text.encode("utf-8")
    n_full_words = len(raw) // BYTES_IN_WORD
    words = [
        int.from_bytes(raw[i * BYTES_IN_WORD : (i + 1) * BYTES_IN_WORD], "big")
        for i in range(n_full_words)
    ]
    pending = raw[n_full_words * BYTES_IN_WORD :]
    return [len(words), *words, int.from_bytes(pending, "big"), len(pending)]


def serialize_option(value: Optional[List[int]]) -> List[int]:
    """Serializes an already serialized payload as `Option`"""
    if value is None:
        return [OPTION_NONE]
    return [OPTION_SOME, *value]


def serialize_result(ok: Optional[List[int]] = None, err: Optional[List[int]] = None):
    """Serializes exactly one of `ok`, `err` as `Result`"""
    assert (ok is None) != (err is None), "Exactly one of ok, err expected"
    if ok is not None:
        return [RESULT_OK, *ok]
    return [RESULT_ERR, *err]


def as_cairo_short_string(value: int) -> Optional[str]:
    """
    Decodes a felt as a short string.
    Returns None if the felt contains bytes which are not printable ASCII or whitespace.
    """
    if value >= FIELD_PRIME or value.bit_length() > 8 * BYTES_IN_WORD:
        return None

    raw = value.to_bytes(BYTES_IN_WORD, "big").lstrip(b"\0").rstrip(b"\0")
    if not all(byte in SHORT_STRING_BYTES for byte in raw):
        return None
    return raw.decode("ascii")


def _try_read_byte_array_panic(data: List[int]) -> Optional[str]:
    if not data or data[0] != BYTE_ARRAY_MAGIC:
        return None

    reader = BufferReader(data[1:])
    try:
        text = reader.read_byte_array()
        reader.assert_consumed()
    except CheatcodeDecodeError:
        return None
    return text


def build_readable_text(data: List[int]) -> Optional[str]:
    """
    Builds a human readable rendition of felts returned or panicked with by a script.
    Returns None for empty data.
    """
    if not data:
        return None

    byte_array_text = _try_read_byte_array_panic(data)
    if byte_array_text is not None:
        return byte_array_text

    lines = []
    for felt in data:
        text = as_cairo_short_string(felt)
        if text:
            lines.append(f"original value: [{felt}], converted to a string: [{text}]")
        else:
            lines.append(f"original value: [{felt}]")
    return "\n".join(lines)
