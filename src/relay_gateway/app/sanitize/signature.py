"""Removal of the n8n automation footer from message text.

n8n appends "This message was sent automatically with n8n" to text it
sends through its Telegram node. The matcher here is whitespace-agnostic:
words of the phrase may be separated by any run of whitespace (spaces,
LF, CRLF), and any whitespace touching the phrase is consumed with it.
Each footer becomes a single ``\\n``; the result is then stripped.

Removal is one left-to-right pass over alternating word and whitespace
tokens kept on a stack. A footer is cut as soon as its last word is
pushed, so a footer that only forms once an inner one is cut out is
caught as well, and the whole pass stays linear in the input length.
Back-to-back footers collapse into one ``\\n``.
"""

from __future__ import annotations

import re

SIGNATURE_PHRASE = 'This message was sent automatically with n8n'

SIGNATURE_PATTERN: re.Pattern[str] = re.compile(
    r'\s+'.join(re.escape(word) for word in SIGNATURE_PHRASE.split()),
    re.IGNORECASE,
)

_WORDS = tuple(SIGNATURE_PHRASE.split())
_FIRST = re.compile(re.escape(_WORDS[0]), re.IGNORECASE)
_MIDDLE = tuple(re.compile(re.escape(word), re.IGNORECASE) for word in _WORDS[1:-1])
_LAST = re.compile(re.escape(_WORDS[-1]), re.IGNORECASE)

# Stack entries covered by one footer: its words plus the runs between them.
_SPAN = 2 * len(_WORDS) - 1

_WHITESPACE_RUN = re.compile(r'(\s+)')


def _is_space(token: str) -> bool:
    return token[0].isspace()


def _ends_with_signature(stack: list[str]) -> bool:
    # The first word may carry text before "This" and the last may carry
    # text after "n8n"; the words in between must be whole tokens.
    if len(stack) < _SPAN:
        return False
    tail = stack[-_SPAN:]
    words = tail[0::2]
    if _is_space(words[0]) or not _LAST.match(words[-1]):
        return False
    if not all(pattern.fullmatch(word) for pattern, word in zip(_MIDDLE, words[1:-1])):
        return False
    return _FIRST.fullmatch(words[0][-len(_WORDS[0]):]) is not None


def _cut(stack: list[str]) -> str:
    """Replace the footer on top of ``stack``; return the text after "n8n"."""
    start = len(stack) - _SPAN
    first, last = stack[start], stack[-1]
    del stack[start:]

    prefix = first[:-len(_WORDS[0])]
    if prefix:
        stack.append(prefix)
    elif stack and _is_space(stack[-1]):
        stack.pop()
    stack.append('\n')
    return last[len(_WORDS[-1]):]


def _push_word(stack: list[str], word: str) -> bool:
    """Push ``word``, cutting footers it completes. True if it ended in a cut."""
    while True:
        stack.append(word)
        if not _ends_with_signature(stack):
            return False
        word = _cut(stack)
        if not word:
            return True


def remove_signature(text: str) -> str:
    """Strip every occurrence of the footer and trim the result.

    ``remove_signature(remove_signature(t)) == remove_signature(t)``.
    """
    if SIGNATURE_PATTERN.search(text) is None:
        return text.strip()

    stack: list[str] = []
    after_cut = False
    for token in _WHITESPACE_RUN.split(text):
        if not token:
            continue
        if _is_space(token):
            # Whitespace right after a footer is consumed with it.
            if not after_cut:
                stack.append(token)
            continue
        after_cut = _push_word(stack, token)
    return ''.join(stack).strip()
