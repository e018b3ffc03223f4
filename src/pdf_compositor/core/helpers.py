# SPDX-License-Identifier: Apache-2.0
"""Helper functions for pypdfium2 raw API operations.

PDFium's C API takes UTF-16LE wide strings and raw byte buffers; these
helpers build the matching ctypes objects.
"""

import ctypes


def to_widestring(text: str) -> ctypes.Array:
    """Convert Python string to FPDF_WIDESTRING (UTF-16LE + null terminator).

    Characters outside the BMP are emitted as surrogate pairs, which is
    what FPDFText_SetText expects.

    Args:
        text: Python string to convert

    Returns:
        ctypes array of c_ushort
    """
    encoded = text.encode("utf-16-le") + b"\x00\x00"
    return (ctypes.c_ushort * (len(encoded) // 2)).from_buffer_copy(encoded)


def to_byte_array(data: bytes) -> ctypes.Array:
    """Copy bytes into a ctypes c_ubyte array.

    The returned array must stay referenced for as long as PDFium may read
    from it (for fonts: until the document is saved and closed).

    Args:
        data: Bytes to copy (e.g. a font program)

    Returns:
        ctypes array of c_ubyte
    """
    return (ctypes.c_ubyte * len(data)).from_buffer_copy(data)
