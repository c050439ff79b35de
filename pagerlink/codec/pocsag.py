"""POCSAG paging message encoder.

This module packs paging messages into 32-bit POCSAG codewords:
21-bit body (flag bit + 20 data/address bits), 10-bit CRC and an even
parity bit. Codewords are grouped into batches of one SYNC word plus 16
slots; an address occupies the frame selected by its low three bits.

All functions are pure: identical inputs always produce identical output.

Example:
    >>> words = encode_transmission(0, 1234567, MessageFunction.ALPHANUMERIC, "HELLO")
    >>> payload = words_to_bytes(words)
"""

from enum import Enum, IntEnum
from typing import List, Sequence
import logging

from pagerlink.core.exceptions import EncodingError

logger = logging.getLogger(__name__)

SYNC = 0x7CD215D8
IDLE = 0x7A89C197
PREAMBLE_WORD = 0xAAAAAAAA

BATCH_SIZE = 16  # slots per batch, SYNC excluded
FRAME_SIZE = 2
CRC_BITS = 10
CRC_GENERATOR = 0b11101101001

PREAMBLE_BITS = 576
PREAMBLE_WORDS = PREAMBLE_BITS // 32
PREAMBLE_BYTE = 0xAA

TEXT_BITS_PER_WORD = 20
TEXT_BITS_PER_CHAR = 7
BCD_BITS_PER_CHAR = 4
BCD_PADDING = 0xC
BCD_INVALID = 0xF

FLAG_ADDRESS = 0x000000
FLAG_MESSAGE = 0x100000

MAX_ADDRESS = (1 << 21) - 1
MAX_MESSAGE_CODEWORDS = 256
BUFFER_SIZE = MAX_MESSAGE_CODEWORDS * 4
MAX_MESSAGE_LENGTH = 240

_BCD_SYMBOLS = {
    ' ': 0xA,
    'U': 0xB, 'u': 0xB,
    '-': 0xC,
    '[': 0xD, '(': 0xD,
    ']': 0xE, ')': 0xE,
}


class MessageFunction(IntEnum):
    """POCSAG function bits carried in the address codeword."""
    TONE = 0
    NUMERIC = 1
    ALPHANUMERIC = 3


class BitOrder(Enum):
    """Bit ordering of 7-bit characters inside message words."""
    LSB_FIRST = "lsb_first"
    MSB_FIRST = "msb_first"


def crc10(body: int) -> int:
    """Calculate the 10-bit BCH remainder of a 21-bit codeword body.

    Args:
        body: 21-bit message body

    Returns:
        10-bit CRC
    """
    denominator = CRC_GENERATOR << 20
    msg = body << CRC_BITS

    for column in range(21):
        if (msg >> (30 - column)) & 1:
            msg ^= denominator
        denominator >>= 1

    return msg & 0x3FF


def even_parity(value: int) -> int:
    """Return the bit that makes the number of set bits in value even."""
    return bin(value & 0xFFFFFFFF).count('1') & 1


def encode_codeword(body: int) -> int:
    """Encode a 21-bit body into a 32-bit codeword.

    Format: [21-bit body][10-bit CRC][1-bit even parity]

    Args:
        body: 21-bit message body

    Returns:
        32-bit codeword
    """
    body &= 0x1FFFFF
    full_crc = (body << CRC_BITS) | crc10(body)
    return (full_crc << 1) | even_parity(full_crc)


def verify_codeword(word: int) -> bool:
    """Check the CRC and parity bits of a codeword.

    Args:
        word: 32-bit codeword

    Returns:
        True if the trailing 11 bits match the CRC and parity recomputed
        over the leading bits
    """
    body = (word >> 11) & 0x1FFFFF
    crc = (word >> 1) & 0x3FF
    parity = word & 1
    return crc == crc10(body) and parity == even_parity(word >> 1)


def address_offset(address: int) -> int:
    """Number of IDLE codewords placed before the address word.

    Returns:
        One of 0, 2, 4, ..., 14
    """
    return (address & 0x7) * FRAME_SIZE


def encode_address(address: int, function: int) -> int:
    """Encode the address codeword.

    The low three address bits select the frame and are not transmitted;
    the remaining 18 bits are followed by the two function bits.
    """
    body = ((address >> 3) << 2) | (int(function) & 0x3)
    return encode_codeword(body | FLAG_ADDRESS)


def char_to_bcd(char: str) -> int:
    """Map a character to its 4-bit numeric code (0xF when unsupported)."""
    if '0' <= char <= '9':
        return ord(char) - ord('0')
    return _BCD_SYMBOLS.get(char, BCD_INVALID)


class _WordPacker:
    """Accumulates bits into 20-bit message words, inserting SYNC per batch."""

    def __init__(self, start_position: int):
        self.words: List[int] = []
        self.position = start_position
        self._current = 0
        self._bits = 0

    def push_bit(self, bit: int) -> None:
        self._current = (self._current << 1) | (bit & 1)
        self._bits += 1
        if self._bits == TEXT_BITS_PER_WORD:
            self._emit()

    @property
    def pending_bits(self) -> int:
        return self._bits

    def _emit(self) -> None:
        self.words.append(encode_codeword(self._current | FLAG_MESSAGE))
        self._current = 0
        self._bits = 0
        self.position += 1
        if self.position == BATCH_SIZE:
            self.words.append(SYNC)
            self.position = 0

    def flush_zero_padded(self) -> None:
        if self._bits:
            self._current <<= TEXT_BITS_PER_WORD - self._bits
            self._bits = TEXT_BITS_PER_WORD
            self._emit()


def _encode_alphanumeric(text: str, bit_order: BitOrder, start_position: int) -> List[int]:
    packer = _WordPacker(start_position)
    msb_first = bit_order == BitOrder.MSB_FIRST

    for char in text:
        code = ord(char)
        for i in range(TEXT_BITS_PER_CHAR):
            shift = (TEXT_BITS_PER_CHAR - 1 - i) if msb_first else i
            packer.push_bit(code >> shift)

    packer.flush_zero_padded()
    return packer.words


def _encode_numeric(text: str, start_position: int) -> List[int]:
    packer = _WordPacker(start_position)

    def push_nibble(nibble: int) -> None:
        for i in range(BCD_BITS_PER_CHAR):
            packer.push_bit(nibble >> i)

    for char in text:
        push_nibble(char_to_bcd(char))

    # Fill the last word with the padding code so pagers show no trailing digits.
    while packer.pending_bits:
        push_nibble(BCD_PADDING)

    return packer.words


def encode_text(text: str,
                function: int = MessageFunction.ALPHANUMERIC,
                bit_order: BitOrder = BitOrder.LSB_FIRST,
                start_position: int = 0) -> List[int]:
    """Encode message text into message codewords.

    Alphanumeric text uses 7 bits per character in the requested bit
    order, zero-padding the final word. Numeric text uses 4-bit codes
    written least significant bit first, padding the final word with 0xC.
    A SYNC word is appended each time the batch position reaches 16.

    Args:
        text: Message text
        function: MessageFunction.NUMERIC for BCD; anything else is text
        bit_order: Bit order for alphanumeric characters
        start_position: Slot position in the current batch of the first word

    Returns:
        Codewords produced, including interleaved SYNC words
    """
    if int(function) == MessageFunction.NUMERIC:
        return _encode_numeric(text, start_position)
    return _encode_alphanumeric(text, bit_order, start_position)


def encode_transmission(repeat_index: int,
                        address: int,
                        function: int,
                        text: str,
                        bit_order: BitOrder = BitOrder.LSB_FIRST) -> List[int]:
    """Assemble a complete POCSAG transmission.

    Structure:
        1. Preamble of 576 alternating bits (only when repeat_index == 0)
        2. SYNC word
        3. IDLE words aligning the address to its frame
        4. Address codeword
        5. Message codewords (SYNC interleaved every 16 slots)
        6. IDLE end-of-message marker
        7. IDLE padding up to the batch boundary

    Args:
        repeat_index: Repetition number; 0 includes the preamble
        address: 21-bit capcode
        function: Function bits (0 tone, 1 numeric, 3 alphanumeric)
        text: Message text (ignored for tone-only)
        bit_order: Bit order for alphanumeric characters

    Returns:
        List of 32-bit words
    """
    words: List[int] = []

    if repeat_index == 0:
        words.extend([PREAMBLE_WORD] * PREAMBLE_WORDS)

    batch_start = len(words)
    words.append(SYNC)

    prefix_length = address_offset(address)
    words.extend([IDLE] * prefix_length)
    words.append(encode_address(address, function))

    if int(function) != MessageFunction.TONE:
        words.extend(encode_text(text, function, bit_order, prefix_length + 1))

    words.append(IDLE)

    written = len(words) - batch_start
    padding = (BATCH_SIZE + 1) - (written % (BATCH_SIZE + 1))
    words.extend([IDLE] * padding)

    return words


def words_to_bytes(words: Sequence[int]) -> bytes:
    """Serialize codewords most significant byte first."""
    return b''.join((word & 0xFFFFFFFF).to_bytes(4, 'big') for word in words)


def preamble_bytes() -> bytes:
    """Return the 72-byte preamble pattern."""
    return bytes([PREAMBLE_BYTE]) * (PREAMBLE_BITS // 8)


def validate_message(address: int,
                     text: str,
                     function: int = MessageFunction.ALPHANUMERIC,
                     max_length: int = MAX_MESSAGE_LENGTH) -> None:
    """Reject input the encoder cannot represent.

    Raises:
        EncodingError: Address outside 21 bits, unknown function, text too
            long, or alphanumeric text with characters above 0x7F
    """
    if not isinstance(address, int) or not 0 <= address <= MAX_ADDRESS:
        raise EncodingError(f"Capcode {address} outside 0..{MAX_ADDRESS}", step="encode")
    if not 0 <= int(function) <= 3:
        raise EncodingError(f"Invalid function {function}, expected 0..3", step="encode")
    if len(text) > max_length:
        raise EncodingError(
            f"Message too long: {len(text)} characters (max {max_length})",
            step="encode"
        )
    if int(function) != MessageFunction.NUMERIC:
        for index, char in enumerate(text):
            if ord(char) > 0x7F:
                raise EncodingError(
                    f"Character {char!r} at position {index} is not 7-bit ASCII",
                    step="encode"
                )


def encode_message(address: int,
                   text: str,
                   function: int = MessageFunction.ALPHANUMERIC,
                   bit_order: BitOrder = BitOrder.LSB_FIRST,
                   repeat_index: int = 0,
                   max_length: int = MAX_MESSAGE_LENGTH) -> bytes:
    """Validate and encode a message into the byte payload sent with AT+SEND.

    Args:
        address: 21-bit capcode
        text: Message text
        function: Function bits
        bit_order: Bit order for alphanumeric characters
        repeat_index: Repetition number; 0 includes the preamble
        max_length: Maximum accepted text length

    Returns:
        Big-endian codeword bytes

    Raises:
        EncodingError: Invalid input or transmission exceeding the buffer
    """
    validate_message(address, text, function, max_length)

    words = encode_transmission(repeat_index, address, function, text, bit_order)
    if len(words) > MAX_MESSAGE_CODEWORDS:
        raise EncodingError(
            f"Encoded transmission needs {len(words)} codewords "
            f"(max {MAX_MESSAGE_CODEWORDS})",
            step="encode"
        )

    logger.debug(
        "Encoded capcode %d (function %d): %d codewords",
        address, int(function), len(words)
    )
    return words_to_bytes(words)
