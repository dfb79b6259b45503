def to_unsigned_32bit(value):
    """Converts a signed 32-bit integer to its two's complement bit pattern.

    Args:
        value (int): A value in the signed 32-bit range.

    Returns:
        int: The same bits read as an unsigned integer (0 - 0xFFFFFFFF).
    """
    if value < -0x80000000 or value > 0x7FFFFFFF:
        raise ValueError("Value out of range for signed 32-bit conversion")
    return value & 0xFFFFFFFF


def split_32bit_to_16bit(value):
    """Splits a 32-bit integer into two 16-bit words.

    Args:
        value (int): The 32-bit integer to split.

    Returns:
        list of int: A list containing two 16-bit integers [low_word, high_word],
        the order a PLC double word expects.
    """
    if value < 0 or value > 0xFFFFFFFF:
        raise ValueError("Value out of range for 32-bit conversion")

    low_word = value & 0xFFFF
    high_word = (value >> 16) & 0xFFFF

    return [low_word, high_word]
