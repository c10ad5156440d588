"""
Seed Phrases
Convert between 16-byte seeds and 15-word mnemonic phrases.

A phrase is 13 seed words followed by 2 checksum words:
  - Words 1-12 carry 10 bits each (dictionary of 1024 words)
  - Word 13 carries 8 bits (first 256 dictionary words only)
  - Words 14-15 carry the first 20 bits of SHA-512(seed)

12 * 10 + 8 = 128 bits, exactly the seed. The seed bytes are read as one
big-endian bitstream. Only the first 3 letters of each word matter, so
"abb" and "abbey" decode the same.
"""

import secrets

from skykey.crypto import sha512
from skykey.dictionary import DICTIONARY, DICTIONARY_LENGTH
from skykey.errors import (
    ChecksumWordOutOfRangeError,
    InvalidChecksumError,
    InvalidSeedLengthError,
    PhraseError,
    UnrecognizedWordError,
    WordTooShortError,
    WrongWordCountError,
)

SEED_LENGTH = 16
SEED_WORDS_LENGTH = 13
CHECKSUM_WORDS_LENGTH = 2
PHRASE_LENGTH = SEED_WORDS_LENGTH + CHECKSUM_WORDS_LENGTH

LAST_WORD_INDEX = SEED_WORDS_LENGTH - 1
WORD_BITS = 10
LAST_WORD_BITS = 8
LAST_WORD_BOUND = 1 << LAST_WORD_BITS
PREFIX_LENGTH = 3

_PREFIX_TO_INDEX = {word[:PREFIX_LENGTH]: i for i, word in enumerate(DICTIONARY)}


def _word_bits(position: int) -> int:
    return LAST_WORD_BITS if position == LAST_WORD_INDEX else WORD_BITS


def generate_phrase() -> str:
    """
    Generate a new random 15-word seed phrase.

    Returns:
        The phrase, words separated by single spaces.
    """
    seed_words = [
        secrets.randbelow(1 << WORD_BITS) % (1 << _word_bits(i))
        for i in range(SEED_WORDS_LENGTH)
    ]
    checksum_words = generate_checksum_words(seed_words)
    return " ".join(DICTIONARY[w] for w in seed_words + checksum_words)


def generate_seed() -> bytes:
    """Generate a new random 16-byte seed."""
    return phrase_to_seed(generate_phrase())


def sanitize_phrase(phrase: str) -> str:
    """Trim, lowercase and collapse whitespace runs to single spaces."""
    return " ".join(phrase.lower().split())


def phrase_to_seed(phrase: str) -> bytes:
    """
    Decode a seed phrase into seed bytes.

    Args:
        phrase: The 15-word phrase. Case and extra whitespace are ignored.

    Returns:
        The 16-byte seed.

    Raises:
        WrongWordCountError: If the phrase is not 15 words long.
        WordTooShortError: If a word has fewer than 3 letters.
        UnrecognizedWordError: If a word's prefix is not in the dictionary.
        ChecksumWordOutOfRangeError: If word 13 is not among the first 256 words.
        InvalidChecksumError: If the checksum words do not match.
    """
    phrase_words = sanitize_phrase(phrase).split(" ")
    if len(phrase_words) != PHRASE_LENGTH:
        raise WrongWordCountError(
            f"Phrase must be {PHRASE_LENGTH} words long, was {len(phrase_words)}"
        )

    # Every word must resolve, checksum words included
    word_indices = [_resolve_word(word, i) for i, word in enumerate(phrase_words)]
    seed_words = word_indices[:SEED_WORDS_LENGTH]

    checksum_words = generate_checksum_words(seed_words)
    for i, checksum_word in enumerate(checksum_words):
        position = SEED_WORDS_LENGTH + i
        if word_indices[position] != checksum_word:
            raise InvalidChecksumError(
                f'Word "{phrase_words[position]}" is not a valid checksum for the seed'
            )

    return seed_words_to_seed(seed_words)


def validate_phrase(phrase: str) -> tuple[bool, str, bytes | None]:
    """
    Check a phrase without raising.

    Returns:
        (valid, error message, seed). The message is empty and the seed is
        set only when the phrase is valid.
    """
    try:
        seed = phrase_to_seed(phrase)
    except PhraseError as e:
        return False, str(e), None
    return True, "", seed


def seed_to_phrase(seed: bytes) -> str:
    """
    Encode seed bytes as a phrase. Used to recover a lost phrase.

    Raises:
        InvalidSeedLengthError: If the seed is not 16 bytes.
        RuntimeError: If a derived word index is out of bounds (never expected).
    """
    seed_words = seed_to_seed_words(seed)
    words = seed_words + generate_checksum_words(seed_words)

    for i, word in enumerate(words):
        bound = LAST_WORD_BOUND if i == LAST_WORD_INDEX else DICTIONARY_LENGTH
        if word >= bound:
            raise RuntimeError(
                f"Seed word '{word}' is out of bounds '{bound}' for seed index '{i}'"
            )

    return " ".join(DICTIONARY[w] for w in words)


def seed_to_seed_words(seed: bytes) -> list[int]:
    """Split 16 seed bytes into 12 10-bit words and one 8-bit word."""
    if len(seed) != SEED_LENGTH:
        raise InvalidSeedLengthError(
            f"Input seed should be length '{SEED_LENGTH}', was '{len(seed)}'"
        )

    bits = int.from_bytes(seed, "big")
    remaining = SEED_LENGTH * 8
    words = []
    for i in range(SEED_WORDS_LENGTH):
        width = _word_bits(i)
        remaining -= width
        words.append((bits >> remaining) & ((1 << width) - 1))
    return words


def seed_words_to_seed(seed_words: list[int]) -> bytes:
    """Pack 13 seed words back into 16 seed bytes."""
    if len(seed_words) != SEED_WORDS_LENGTH:
        raise InvalidSeedLengthError(
            f"Input seed words should be length '{SEED_WORDS_LENGTH}', was '{len(seed_words)}'"
        )

    bits = 0
    for i, word in enumerate(seed_words):
        width = _word_bits(i)
        if not 0 <= word < (1 << width):
            raise InvalidSeedLengthError(f"Seed word {i + 1} does not fit in {width} bits")
        bits = (bits << width) | word
    return bits.to_bytes(SEED_LENGTH, "big")


def generate_checksum_words(seed_words: list[int]) -> list[int]:
    """Compute the 2 checksum words for the given seed words."""
    return hash_to_checksum_words(sha512(seed_words_to_seed(seed_words)))


def hash_to_checksum_words(h: bytes) -> list[int]:
    """Take the first 20 bits of a hash as two 10-bit words."""
    head = int.from_bytes(h[:3], "big")
    return [head >> 14, (head >> 4) & 0x3FF]


def _resolve_word(word: str, position: int) -> int:
    """Resolve a phrase word to its dictionary index by its 3-letter prefix."""
    if len(word) < PREFIX_LENGTH:
        raise WordTooShortError(f"Word {position + 1} is not at least {PREFIX_LENGTH} letters long")

    prefix = word[:PREFIX_LENGTH]
    index = _PREFIX_TO_INDEX.get(prefix)
    if position == LAST_WORD_INDEX and (index is None or index >= LAST_WORD_BOUND):
        raise ChecksumWordOutOfRangeError(
            f"Prefix for word {position + 1} must be found in the first "
            f"{LAST_WORD_BOUND} words of the dictionary"
        )
    if index is None:
        raise UnrecognizedWordError(
            f'Unrecognized prefix "{prefix}" at word {position + 1}, not found in dictionary'
        )
    return index
