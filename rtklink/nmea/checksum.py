"""NMEA checksum validation and generation.

NMEA 0183 sentences use a simple XOR checksum for data integrity verification.
The checksum is calculated over all characters between '$' and '*' (exclusive),
then represented as a two-digit uppercase hexadecimal number after the '*'.

Example sentence structure:
    $GPGGA,092750.000,5321.6802,N,00630.3372,W,1,8,1.03,61.7,M,55.2,M,,*76
    ^                          checksum content                        ^^
    start                                                    checksum (0x76)
"""

# "$" + 5-char identifier + "*" + 2 hex digits
MINIMUM_SENTENCE_LENGTH = 9


def _extract_checksum_parts(sentence: str) -> tuple[str, str] | None:
    """Extract the payload content and provided checksum from an NMEA sentence.

    Args:
        sentence: Raw NMEA sentence string (e.g., "$GPGGA,...*76")

    Returns:
        A tuple of (content, checksum_hex) if the sentence has valid structure,
        or None if the '$' or '*' delimiter is missing, or the checksum is not
        exactly 2 characters (truncated sentence).

    Example:
        >>> _extract_checksum_parts("$GPGGA,092750*4B")
        ('GPGGA,092750', '4B')
    """
    if not sentence.startswith("$") or "*" not in sentence:
        return None

    end = sentence.index("*")
    content = sentence[1:end]
    provided = sentence[end + 1 : end + 3]

    if len(provided) != 2:
        return None

    return content, provided


def calculate_checksum(content: str) -> int:
    """Calculate the XOR checksum of a content string.

    Args:
        content: The string between '$' and '*' (exclusive)

    Returns:
        Integer checksum value (0-255)
    """
    result = 0
    for character in content:
        result ^= ord(character)
    return result


def format_checksum(content: str) -> str:
    """Return the checksum of ``content`` as two uppercase hex digits."""
    return f"{calculate_checksum(content):02X}"


def validate_checksum(sentence: str) -> bool:
    """Validate the checksum of an NMEA sentence.

    Args:
        sentence: Complete NMEA sentence including '$', '*', and checksum.
                  May include trailing whitespace/newlines (will be stripped).

    Returns:
        True if the checksum is valid, False if the sentence is malformed,
        the checksum is truncated or non-hexadecimal, or the calculated
        checksum doesn't match the provided one.
    """
    sentence = sentence.strip()

    parts = _extract_checksum_parts(sentence)
    if parts is None:
        return False

    content, provided = parts

    try:
        return calculate_checksum(content) == int(provided, 16)
    except ValueError:
        return False


def check_sentence(sentence: str) -> str | None:
    """Run the structural checks a sentence must pass before decoding.

    The checks are applied in order and the first failure is reported:

    1. the sentence is non-empty
    2. it starts with '$' and is at least 9 characters long
    3. it contains '*'
    4. the XOR checksum matches

    Returns:
        None when the sentence is acceptable, otherwise a short reason.
    """
    if not sentence:
        return "empty sentence"
    if not sentence.startswith("$") or len(sentence) < MINIMUM_SENTENCE_LENGTH:
        return "invalid sentence format"
    if "*" not in sentence:
        return "missing checksum delimiter"
    if not validate_checksum(sentence):
        return "checksum mismatch"
    return None
