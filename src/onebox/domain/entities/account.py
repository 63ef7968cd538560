from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from pydantic import SecretStr


@dataclass(frozen=True)
class CredentialPair:
    """One configured mailbox entry, possibly incomplete."""
    identifier: Optional[str]
    password: Optional[str]

    @property
    def is_complete(self) -> bool:
        return bool(self.identifier and self.password)


@dataclass(frozen=True)
class Account:
    """A mailbox the engine keeps a session open for.

    Built only from complete credential pairs and never mutated afterwards.
    """
    identifier: str
    credentials: SecretStr

    @classmethod
    def from_pair(cls, pair: CredentialPair) -> "Account":
        if not pair.is_complete:
            raise ValueError("Credential pair is missing the address or the password")
        return cls(identifier=pair.identifier.strip(), credentials=SecretStr(pair.password))
