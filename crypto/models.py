from dataclasses import dataclass


@dataclass
class PlaintextFile:
    """Decrypted (or about to be encrypted) file content."""

    data: bytes
    content_type: str
    name: str

    @property
    def size(self) -> int:
        return len(self.data)
