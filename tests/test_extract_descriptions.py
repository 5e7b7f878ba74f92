"""
Tests for the manual description extraction strategies and their merge policies.
"""

import tempfile
import unittest
from pathlib import Path

from rv_spec_extraction.extract_descriptions import (
    APPEND,
    FIRST_WINS,
    LONGER_WINS,
    REPLACE,
    CsrInlineProseStrategy,
    CsrSectionHeadingStrategy,
    DescriptionExtractor,
    NormativeAnchorStrategy,
    ProsePatternStrategy,
    Proposal,
    SectionHeadingStrategy,
    apply_proposal,
)


class TestApplyProposal(unittest.TestCase):
    """Merge policies, independent of any text scanning."""

    def test_absent_key_always_set(self):
        for policy in (APPEND, LONGER_WINS, FIRST_WINS, REPLACE):
            with self.subTest(policy=policy):
                descriptions = {}
                self.assertTrue(apply_proposal(descriptions, Proposal("add", "text", policy)))
                self.assertEqual(descriptions, {"add": "text"})

    def test_append(self):
        descriptions = {"add": "first"}
        apply_proposal(descriptions, Proposal("add", "second", APPEND))
        self.assertEqual(descriptions["add"], "first second")

    def test_longer_wins(self):
        descriptions = {"add": "medium text"}
        self.assertFalse(apply_proposal(descriptions, Proposal("add", "short", LONGER_WINS)))
        self.assertFalse(apply_proposal(descriptions, Proposal("add", "same length", LONGER_WINS)))
        self.assertTrue(apply_proposal(descriptions, Proposal("add", "a much longer text", LONGER_WINS)))
        self.assertEqual(descriptions["add"], "a much longer text")

    def test_first_wins(self):
        descriptions = {"add": "first"}
        self.assertFalse(apply_proposal(descriptions, Proposal("add", "a longer second", FIRST_WINS)))
        self.assertEqual(descriptions["add"], "first")

    def test_replace(self):
        descriptions = {"mstatus": "a long existing description"}
        apply_proposal(descriptions, Proposal("mstatus", "short", REPLACE))
        self.assertEqual(descriptions["mstatus"], "short")

    def test_unknown_policy(self):
        with self.assertRaises(ValueError):
            apply_proposal({"add": "x"}, Proposal("add", "y", "sometimes"))


class TestNormativeAnchorStrategy(unittest.TestCase):

    def test_anchor_text_extracted(self):
        content = "Some intro.\n\n[#norm:add_op]#ADD performs integer addition.#\n"
        descriptions = DescriptionExtractor().extract_from_content(content)
        self.assertEqual(descriptions.instructions["add"], "ADD performs integer addition.")

    def test_spans_accumulate(self):
        content = (
            "[#norm:add_op]#ADD adds rs1 to rs2.#\n"
            "[#norm:add_desc]#Overflow is ignored here.#\n"
        )
        descriptions = DescriptionExtractor([NormativeAnchorStrategy()]).extract_from_content(content)
        self.assertEqual(descriptions.instructions["add"], "ADD adds rs1 to rs2. Overflow is ignored here.")

    def test_kinds_and_minimum_length(self):
        proposals = NormativeAnchorStrategy().extract(
            "[#norm:sub_op]#Short.#\n"
            "[#norm:mul_foo]#MUL multiplies two registers.#\n"
            "[#norm:FENCE_TSO_behavior]#FENCE.TSO orders memory accesses.#\n"
        )
        self.assertEqual(proposals, [Proposal("fence_tso", "FENCE.TSO orders memory accesses.", APPEND)])


class TestSectionHeadingStrategy(unittest.TestCase):

    def test_fallback_and_normative_sections(self):
        content = (
            "=== SLT\n\n"
            "SLT sets rd to 1 when rs1 is less than rs2, and to 0 otherwise.\n\n"
            "=== SLTU\n\n"
            "[#norm:sltu_x]#SLTU compares unsigned values and writes the result to rd.#\n"
        )
        proposals = SectionHeadingStrategy().extract(content)

        self.assertEqual(proposals, [
            Proposal("slt", "SLT sets rd to 1 when rs1 is less than rs2, and to 0 otherwise.", FIRST_WINS),
            Proposal("sltu", "SLTU compares unsigned values and writes the result to rd.", LONGER_WINS),
        ])

    def test_deeper_headings_stay_in_section(self):
        content = (
            "== ADDI\n"
            "==== Encoding\n"
            "|===\n"
            "| table |\n"
            "|===\n\n"
            "ADDI adds the sign-extended 12-bit immediate to register rs1.\n"
        )
        proposals = SectionHeadingStrategy().extract(content)
        self.assertEqual(
            proposals,
            [Proposal("addi", "ADDI adds the sign-extended 12-bit immediate to register rs1.", FIRST_WINS)],
        )

    def test_attribute_paragraphs_skipped(self):
        content = "=== LUI\n\n[source,asm]\nlui a0, 0x12345\n\nLUI places the U-immediate value in the top 20 bits of rd.\n"
        proposals = SectionHeadingStrategy().extract(content)
        self.assertEqual(proposals[0].text, "LUI places the U-immediate value in the top 20 bits of rd.")

    def test_section_length_cap(self):
        paragraph = "\n\nFOO is described in a paragraph that sits far away.\n"
        near = "=== FOO\n" + "| cell |\n" * 10 + paragraph
        far = "=== FOO\n" + "| cell |\n" * 300 + paragraph

        self.assertEqual(len(SectionHeadingStrategy().extract(near)), 1)
        self.assertEqual(SectionHeadingStrategy().extract(far), [])

    def test_fallback_truncated(self):
        content = "=== LONG\n\n" + "word " * 200 + "\n"
        proposals = SectionHeadingStrategy().extract(content)
        self.assertEqual(len(proposals[0].text), 500)

    def test_lowercase_heading_ignored(self):
        self.assertEqual(SectionHeadingStrategy().extract("=== Overview\n\nA paragraph that is long enough to count.\n"), [])


class TestProsePatternStrategy(unittest.TestCase):

    def test_sentence(self):
        proposals = ProsePatternStrategy().extract(
            "Intro sentence here. The ADDW instruction adds the low 32 bits of rs1 and rs2."
        )
        self.assertEqual(proposals, [Proposal("addw", "ADDW adds the low 32 bits of rs1 and rs2.", FIRST_WINS)])

    def test_backticked_mnemonic(self):
        proposals = ProsePatternStrategy().extract("`JAL` stores the address of the following instruction.")
        self.assertEqual(proposals[0].key, "jal")
        self.assertEqual(proposals[0].text, "JAL stores the address of the following instruction.")

    def test_verb_must_be_whole_word(self):
        self.assertEqual(ProsePatternStrategy().extract("Intro. FOO isolates a register from all others."), [])

    def test_too_short(self):
        self.assertEqual(ProsePatternStrategy().extract("Intro. X is ok."), [])


class TestCsrStrategies(unittest.TestCase):

    def test_section_fallback(self):
        content = (
            "=== `mtvec` Register\n\n"
            "The mtvec register holds trap vector configuration, consisting of a base address and mode.\n"
        )
        proposals = CsrSectionHeadingStrategy().extract(content)
        self.assertEqual(proposals, [Proposal(
            "mtvec",
            "The mtvec register holds trap vector configuration, consisting of a base address and mode.",
            FIRST_WINS,
        )])

    def test_normative_section_replaces(self):
        extractor = DescriptionExtractor()
        descriptions = extractor.extract_from_content(
            "=== mstatus\n\n"
            "The mstatus register keeps track of and controls the current operating state.\n"
        )
        extractor.extract_from_content(
            "=== mstatus\n\n[#norm:mstatus_sd]#The SD bit summarizes dirty state.#\n",
            descriptions,
        )
        self.assertEqual(descriptions.csrs["mstatus"], "The SD bit summarizes dirty state.")

    def test_inline_prose(self):
        proposals = CsrInlineProseStrategy().extract(
            "Overview text. The `mscratch` register is used to hold a pointer to a context space."
        )
        self.assertEqual(proposals, [Proposal(
            "mscratch",
            "The mscratch register is used to hold a pointer to a context space.",
            FIRST_WINS,
        )])

    def test_inline_prose_only_fills_gaps(self):
        content = (
            "=== mepc\n\n"
            "When a trap is taken into M-mode, mepc is written with the virtual address.\n\n"
            "Other text. The `mepc` CSR holds the exception program counter value.\n"
        )
        descriptions = DescriptionExtractor().extract_from_content(content)
        self.assertEqual(
            descriptions.csrs["mepc"],
            "When a trap is taken into M-mode, mepc is written with the virtual address.",
        )


class TestStrategyPrecedence(unittest.TestCase):

    def test_normative_anchor_beats_section_fallback(self):
        content = (
            "[#norm:add_op]#ADD performs integer addition of rs1 and rs2.#\n\n"
            "==== ADD\n\n"
            "This is a fallback paragraph that is long enough to qualify.\n"
        )
        descriptions = DescriptionExtractor().extract_from_content(content)
        self.assertEqual(descriptions.instructions["add"], "ADD performs integer addition of rs1 and rs2.")

    def test_section_normative_precedes_prose(self):
        content = (
            "Intro. SRA shifts right arithmetically by rs2.\n\n"
            "=== SRA\n\n"
            "[#norm:sra_x]#SRA performs an arithmetic right shift of rs1 by the shift amount in rs2.#\n"
        )
        descriptions = DescriptionExtractor().extract_from_content(content)
        self.assertEqual(
            descriptions.instructions["sra"],
            "SRA performs an arithmetic right shift of rs1 by the shift amount in rs2.",
        )

    def test_section_normative_longer_wins_across_documents(self):
        extractor = DescriptionExtractor()
        descriptions = extractor.extract_from_content("=== SRA\n\n[#norm:sra_a]#SRA shifts right arithmetically.#\n")
        extractor.extract_from_content(
            "=== SRA\n\n[#norm:sra_b]#SRA performs an arithmetic right shift of rs1 by rs2.#\n",
            descriptions,
        )
        extractor.extract_from_content("=== SRA\n\n[#norm:sra_c]#SRA shifts.#\n", descriptions)

        self.assertEqual(descriptions.instructions["sra"], "SRA performs an arithmetic right shift of rs1 by rs2.")
        self.assertEqual(extractor.applied["section-heading"], 2)


class TestExtractFromDirectory(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        root = Path(self.tmp.name)
        (root / "b").mkdir()
        (root / "a.adoc").write_text("Intro. XOR performs a bitwise exclusive or of two registers.\n")
        (root / "b" / "c.adoc").write_text("Intro. XOR computes something else entirely, apparently.\n")
        (root / "b" / "d.adoc").write_bytes(b"\xff\xfe not utf-8")
        (root / "notes.txt").write_text("Intro. OR performs a bitwise or of two registers.\n")
        self.root = root

    def tearDown(self):
        self.tmp.cleanup()

    def test_sorted_documents_first_wins(self):
        extractor = DescriptionExtractor()
        descriptions = extractor.extract_from_directory(self.root)

        self.assertEqual(descriptions.instructions["xor"], "XOR performs a bitwise exclusive or of two registers.")
        self.assertNotIn("or", descriptions.instructions)
        self.assertEqual(extractor.documents, 2)
        self.assertEqual(len(extractor.skipped_documents), 1)

    def test_missing_directory(self):
        descriptions = DescriptionExtractor().extract_from_directory(self.root / "missing")
        self.assertEqual(descriptions.instructions, {})
        self.assertEqual(descriptions.csrs, {})


if __name__ == '__main__':
    unittest.main()
