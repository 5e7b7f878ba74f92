"""
RISC-V Manual Description Extractor

Mines the AsciiDoc sources of the riscv-isa-manual for instruction and CSR
descriptions. The manual has no machine-readable "description" field, so
several independent text patterns are tried, in a fixed order, and their
results are folded into two maps keyed by lower-cased name.

Strategies (applied in this order for every document):
    1. Normative anchors   [#norm:add_op]#...#                  append
    2. Instruction section === ADD                              longer wins / first wins
    3. Instruction prose   "ADD performs ..."                   first wins
    4. CSR section         === mstatus Register                 replace / first wins
    5. CSR prose           "The `mstatus` register holds ..."   first wins

Each strategy only *proposes* (name, text, policy) entries; ``apply_proposal``
is the single place where merge policies are implemented.
"""

import re
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional

from .adoc_text import clean_adoc_text


# ============================================================================
# Merge Policies
# ============================================================================

APPEND = "append"
LONGER_WINS = "longer-wins"
FIRST_WINS = "first-wins"
REPLACE = "replace"

INSTRUCTIONS = "instructions"
CSRS = "csrs"


class Proposal(NamedTuple):
    key: str
    text: str
    policy: str


def apply_proposal(descriptions: Dict[str, str], proposal: Proposal) -> bool:
    """
    Fold one proposal into a description map.

    Returns:
        True if the map changed
    """
    key, text, policy = proposal
    existing = descriptions.get(key)

    if existing is None:
        descriptions[key] = text
        return True

    if policy == APPEND:
        descriptions[key] = existing + ' ' + text
        return True
    if policy == LONGER_WINS:
        if len(text) > len(existing):
            descriptions[key] = text
            return True
        return False
    if policy == REPLACE:
        descriptions[key] = text
        return text != existing
    if policy == FIRST_WINS:
        return False

    raise ValueError(f"Unknown merge policy: {policy}")


# ============================================================================
# Shared Section Helpers
# ============================================================================

NORM_SPAN_RE = re.compile(r'\[#norm:[^\]]+\]#([^#]+)#')

MIN_PARAGRAPH_LENGTH = 30
MAX_PARAGRAPH_LENGTH = 500


def section_body(content: str, heading: re.Match, limit: int) -> str:
    """Text between a heading and the next heading of the same or a shallower level."""
    start = heading.end()
    level = len(heading.group(1))
    next_heading = re.compile(rf'^={{2,{level}}}[ \t]+', re.MULTILINE).search(content, start)
    end = next_heading.start() if next_heading else start + limit
    return content[start:end]


def normative_text(section: str) -> str:
    """Cleaned normative spans of a section, joined with spaces."""
    return ' '.join(clean_adoc_text(span) for span in NORM_SPAN_RE.findall(section))


def first_paragraph(section: str) -> Optional[str]:
    """
    First prose paragraph of a section, skipping tables and block attributes.

    Returns:
        Cleaned paragraph (truncated to MAX_PARAGRAPH_LENGTH) or None
    """
    for para in section.split('\n\n'):
        cleaned = clean_adoc_text(para)
        if len(cleaned) > MIN_PARAGRAPH_LENGTH and '|' not in cleaned and not para.strip().startswith('['):
            return cleaned[:MAX_PARAGRAPH_LENGTH]
    return None


# ============================================================================
# Strategies
# ============================================================================

class ExtractionStrategy:
    """Base class: a pure function from document text to proposals."""

    name = "strategy"
    target = INSTRUCTIONS

    def extract(self, content: str) -> List[Proposal]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.target})"


class NormativeAnchorStrategy(ExtractionStrategy):
    """[#norm:<name>_<op|desc|enc|behavior>]#text# spans, accumulated per name."""

    name = "normative-anchor"
    target = INSTRUCTIONS

    PATTERN = re.compile(
        r'\[#norm:([a-z0-9_]+)_(?:op|desc|enc|behavior)[^\]]*\]#([^#]+)#',
        re.IGNORECASE,
    )
    MIN_LENGTH = 10

    def extract(self, content: str) -> List[Proposal]:
        proposals = []
        for match in self.PATTERN.finditer(content):
            text = clean_adoc_text(match.group(2))
            if len(text) > self.MIN_LENGTH:
                proposals.append(Proposal(match.group(1).lower(), text, APPEND))
        return proposals


class SectionHeadingStrategy(ExtractionStrategy):
    """
    Sections titled with a bare mnemonic (``==== ADD``).

    Normative spans inside the section are preferred; otherwise the first
    prose paragraph is used.
    """

    name = "section-heading"
    target = INSTRUCTIONS

    HEADING = re.compile(r'^(={2,4})[ \t]+([A-Z][A-Z0-9.]+)[ \t]*$', re.MULTILINE)
    BODY_LIMIT = 2000
    NORMATIVE_POLICY = LONGER_WINS

    def extract(self, content: str) -> List[Proposal]:
        proposals = []
        for heading in self.HEADING.finditer(content):
            key = heading.group(2).lower()
            section = section_body(content, heading, self.BODY_LIMIT)

            if NORM_SPAN_RE.search(section):
                text = normative_text(section)
                if text:
                    proposals.append(Proposal(key, text, self.NORMATIVE_POLICY))
                continue

            paragraph = first_paragraph(section)
            if paragraph:
                proposals.append(Proposal(key, paragraph, FIRST_WINS))
        return proposals


class ProsePatternStrategy(ExtractionStrategy):
    """Sentences such as "The `ADD` instruction performs ..."."""

    name = "prose-pattern"
    target = INSTRUCTIONS

    VERBS = (
        r'performs?|is|computes?|loads?|stores?|writes?|reads?|sets?|clears?|adds?|'
        r'subtracts?|multiplies?|divides?|shifts?|rotates?|branches?|jumps?|calls?|'
        r'returns?|atomically|sign-extends?|zero-extends?'
    )
    PATTERN = re.compile(
        r'(?:^|\.\s+)(?:The\s+)?`?([A-Z][A-Z0-9.]*)`?\s+(?:instruction\s+)?'
        rf'({VERBS})\b([^.]+\.)',
        re.IGNORECASE,
    )
    MIN_LENGTH = 20

    def extract(self, content: str) -> List[Proposal]:
        proposals = []
        for match in self.PATTERN.finditer(content):
            name, verb, rest = match.groups()
            text = clean_adoc_text(f"{name} {verb}{rest}")
            if len(text) > self.MIN_LENGTH:
                proposals.append(Proposal(name.lower(), text, FIRST_WINS))
        return proposals


class CsrSectionHeadingStrategy(SectionHeadingStrategy):
    """Sections titled with a register name (``=== mstatus Register``)."""

    name = "csr-section-heading"
    target = CSRS

    HEADING = re.compile(
        r'^(={2,4})[ \t]+(?:The[ \t]+)?`?([a-z][a-z0-9_]*)`?(?:[ \t]+(?:Register|CSR))?[ \t]*$',
        re.MULTILINE | re.IGNORECASE,
    )
    BODY_LIMIT = 1500
    NORMATIVE_POLICY = REPLACE


class CsrInlineProseStrategy(ExtractionStrategy):
    """Sentences such as "The `mstatus` register keeps track of ..."."""

    name = "csr-inline-prose"
    target = CSRS

    PATTERN = re.compile(
        r'(?:^|\.\s+)(?:The\s+)?`([a-z][a-z0-9_]*)`\s+(?:CSR|register)\s+'
        r'(is|contains?|holds?|provides?|controls?)\b([^.]+\.)',
        re.IGNORECASE,
    )
    MIN_LENGTH = 20

    def extract(self, content: str) -> List[Proposal]:
        proposals = []
        for match in self.PATTERN.finditer(content):
            name, verb, rest = match.groups()
            name = name.lower()
            text = clean_adoc_text(f"The {name} register {verb}{rest}")
            if len(text) > self.MIN_LENGTH:
                proposals.append(Proposal(name, text, FIRST_WINS))
        return proposals


DEFAULT_STRATEGIES = (
    NormativeAnchorStrategy(),
    SectionHeadingStrategy(),
    ProsePatternStrategy(),
    CsrSectionHeadingStrategy(),
    CsrInlineProseStrategy(),
)


# ============================================================================
# Extraction Driver
# ============================================================================

class Descriptions:
    """Accumulated name -> description maps for instructions and CSRs."""

    def __init__(self):
        self.instructions: Dict[str, str] = {}
        self.csrs: Dict[str, str] = {}

    def target(self, name: str) -> Dict[str, str]:
        if name == INSTRUCTIONS:
            return self.instructions
        if name == CSRS:
            return self.csrs
        raise ValueError(f"Unknown description target: {name}")


class DescriptionExtractor:
    """Runs the strategies over one or many documents in a fixed order."""

    def __init__(self, strategies: Iterable[ExtractionStrategy] = DEFAULT_STRATEGIES):
        self.strategies = list(strategies)
        self.applied: Dict[str, int] = {strategy.name: 0 for strategy in self.strategies}
        self.documents = 0
        self.skipped_documents: List[str] = []

    def extract_from_content(self, content: str, descriptions: Optional[Descriptions] = None) -> Descriptions:
        """Apply every strategy, in order, to one document."""
        if descriptions is None:
            descriptions = Descriptions()

        for strategy in self.strategies:
            target = descriptions.target(strategy.target)
            for proposal in strategy.extract(content):
                if apply_proposal(target, proposal):
                    self.applied[strategy.name] += 1

        return descriptions

    def extract_from_directory(self, manual_dir: Path) -> Descriptions:
        """
        Extract descriptions from every ``.adoc`` file below ``manual_dir``.

        Files are visited in sorted path order so results are reproducible.
        Unreadable files are reported and skipped.
        """
        print("\n" + "=" * 70)
        print("EXTRACTING DESCRIPTIONS FROM MANUAL")
        print("=" * 70)

        descriptions = Descriptions()
        manual_dir = Path(manual_dir)
        if not manual_dir.is_dir():
            print(f"  WARNING: Manual directory not found: {manual_dir}")
            return descriptions

        for path in sorted(manual_dir.rglob('*.adoc')):
            try:
                content = path.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                print(f"  WARNING: Skipping {path}: {e}")
                self.skipped_documents.append(str(path))
                continue

            self.extract_from_content(content, descriptions)
            self.documents += 1

        print(f"✓ Scanned {self.documents} documents")
        print(f"  Instruction descriptions: {len(descriptions.instructions)}")
        print(f"  CSR descriptions: {len(descriptions.csrs)}")
        for name, count in self.applied.items():
            print(f"    {name:22s} {count}")

        return descriptions
