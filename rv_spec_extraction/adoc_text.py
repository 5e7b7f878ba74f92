"""
AsciiDoc markup cleanup for text mined from the ISA manual.
"""

import re


# (pattern, replacement) applied in order on every pass
CLEANUP_RULES = [
    # [#norm:xxx]#text# -> text
    (re.compile(r'\[#norm:[^\]]+\]#([^#]+)#'), r'\1'),
    # <<label>> or <<label,text>>
    (re.compile(r'<<[^>]+>>'), ''),
    # [[anchor]]
    (re.compile(r'\[\[[^\]]+\]\]'), ''),
    # Inline formatting
    (re.compile(r'\*\*([^*]+)\*\*'), r'\1'),
    (re.compile(r'\*([^*]+)\*'), r'\1'),
    (re.compile(r'_([^_]+)_'), r'\1'),
    (re.compile(r'`([^`]+)`'), r'\1'),
    # Footnotes are dropped entirely
    (re.compile(r'footnote:\[[^\]]*\]'), ''),
    # Attribute lines: [%header] and :attr: value
    (re.compile(r'^\[%[^\]]+\]\s*', re.MULTILINE), ''),
    (re.compile(r'^:.*$', re.MULTILINE), ''),
]

WHITESPACE_RE = re.compile(r'\s+')


def _clean_once(text: str) -> str:
    for pattern, replacement in CLEANUP_RULES:
        text = pattern.sub(replacement, text)
    return WHITESPACE_RE.sub(' ', text).strip()


def clean_adoc_text(text: str) -> str:
    """
    Remove AsciiDoc markup from text, keeping the readable content.

    Passes are repeated until the text stops changing, so nested markup such
    as ``**_x_**`` is fully unwrapped and cleaning an already clean string is
    a no-op. Every pass either shortens the text or only normalizes
    whitespace, so the loop terminates.

    Examples:
        "[#norm:add_op]#ADD performs *addition*.#" -> "ADD performs addition."
        "See <<sec-csr>> for `mstatus`."            -> "See for mstatus."
    """
    cleaned = _clean_once(text)
    while True:
        again = _clean_once(cleaned)
        if again == cleaned:
            return cleaned
        cleaned = again
