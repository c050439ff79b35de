"""POCSAG codec package.

Pure encoding of paging messages into protocol codewords and bytes.
"""

from pagerlink.codec.pocsag import (
    SYNC,
    IDLE,
    MAX_ADDRESS,
    MAX_MESSAGE_CODEWORDS,
    MAX_MESSAGE_LENGTH,
    MessageFunction,
    BitOrder,
    crc10,
    even_parity,
    encode_codeword,
    verify_codeword,
    address_offset,
    encode_address,
    encode_text,
    encode_transmission,
    encode_message,
    validate_message,
    words_to_bytes,
    preamble_bytes,
)

__all__ = [
    'SYNC',
    'IDLE',
    'MAX_ADDRESS',
    'MAX_MESSAGE_CODEWORDS',
    'MAX_MESSAGE_LENGTH',
    'MessageFunction',
    'BitOrder',
    'crc10',
    'even_parity',
    'encode_codeword',
    'verify_codeword',
    'address_offset',
    'encode_address',
    'encode_text',
    'encode_transmission',
    'encode_message',
    'validate_message',
    'words_to_bytes',
    'preamble_bytes',
]
