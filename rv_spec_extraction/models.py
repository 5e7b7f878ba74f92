"""
Data models shared by every extraction stage.

The JSON shape produced by ``to_dict()`` is consumed as-is by the search
application, so key names and ordering must not change.
"""

from typing import Any, Dict, List, Union


class BitField:
    """One bit-range assignment inside an instruction word."""

    def __init__(self, high: int, low: int, value: Union[int, str]):
        self.high = high
        self.low = low
        self.value = value

    @property
    def is_fixed(self) -> bool:
        """True when the bits hold a constant rather than an operand."""
        return isinstance(self.value, int)

    @property
    def width(self) -> int:
        return self.high - self.low + 1

    def to_dict(self) -> Dict[str, Any]:
        return {"high": self.high, "low": self.low, "value": self.value}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitField):
            return NotImplemented
        return (self.high, self.low, self.value) == (other.high, other.low, other.value)

    def __repr__(self) -> str:
        return f"BitField([{self.high}:{self.low}], {self.value!r})"


class Instruction:
    """A real or pseudo instruction parsed from an opcode definition file."""

    def __init__(
        self,
        name: str,
        extension: str,
        operands: List[str],
        encoding: List[BitField],
        type: str = "instruction",
        description: str = "",
    ):
        self.name = name.strip()
        self.extension = extension.strip()
        self.operands = operands
        self.encoding = encoding
        self.description = description
        self.type = type

    def with_description(self, description: str) -> "Instruction":
        """Return a copy carrying ``description``; the original is left untouched."""
        return Instruction(
            self.name,
            self.extension,
            list(self.operands),
            list(self.encoding),
            type=self.type,
            description=description,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to output dictionary format."""
        return {
            "name": self.name,
            "extension": self.extension,
            "operands": self.operands,
            "encoding": [field.to_dict() for field in self.encoding],
            "description": self.description,
            "type": self.type,
        }

    def __repr__(self) -> str:
        return f"Instruction({self.name}, {self.extension}, {self.type})"


class CSR:
    """A control/status register parsed from the register table."""

    def __init__(self, name: str, address: str, privilege: str, description: str = ""):
        self.name = name.strip()
        self.address = address.strip()
        self.privilege = privilege
        self.description = description
        self.type = "csr"

    def with_description(self, description: str) -> "CSR":
        return CSR(self.name, self.address, self.privilege, description=description)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to output dictionary format."""
        return {
            "name": self.name,
            "address": self.address,
            "privilege": self.privilege,
            "description": self.description,
            "type": self.type,
        }

    def __repr__(self) -> str:
        return f"CSR({self.name}, {self.address}, {self.privilege})"


class Dataset:
    """Top-level artifact written to ``instructions.json``."""

    def __init__(
        self,
        instructions: List[Instruction],
        csrs: List[CSR],
        version: str,
        generated_at: str,
    ):
        self.instructions = instructions
        self.csrs = csrs
        self.version = version
        self.generated_at = generated_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instructions": [instr.to_dict() for instr in self.instructions],
            "csrs": [csr.to_dict() for csr in self.csrs],
            "version": self.version,
            "generatedAt": self.generated_at,
        }
