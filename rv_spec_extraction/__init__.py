"""RISC-V instruction, pseudo-instruction and CSR dataset extraction."""

__version__ = "1.0.0"
