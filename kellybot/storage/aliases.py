"""Bookmaker and sport alias maps persisted to data/aliases.yaml."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from kellybot.storage.files import RecordFile

logger = logging.getLogger(__name__)

AliasKind = Literal["bookmaker", "sport"]


class AliasBook(BaseModel):
    """Shorthand -> full name, e.g. PP -> Paddy Power. Keys are upper-case."""

    bookmakers: dict[str, str] = Field(default_factory=dict)
    sports: dict[str, str] = Field(default_factory=dict)

    def mapping(self, kind: AliasKind) -> dict[str, str]:
        if kind == "bookmaker":
            return self.bookmakers
        if kind == "sport":
            return self.sports
        raise ValueError(f"Invalid alias kind: {kind}")

    def add(self, kind: AliasKind, alias: str, full_name: str) -> str | None:
        """Add or replace an alias. Returns the full name it previously mapped to."""
        alias = alias.strip()
        full_name = full_name.strip()
        if not alias or not full_name:
            raise ValueError("Alias and full name cannot be empty.")

        mapping = self.mapping(kind)
        key = alias.upper()
        previous = mapping.get(key)
        mapping[key] = full_name
        return previous


def load_aliases(path: Path) -> AliasBook:
    """Load aliases, or an empty book if the file is missing or unreadable."""
    record = RecordFile(path)
    try:
        raw = record.load()
    except ValueError as e:
        logger.error(f"Error parsing alias file {path}: {e}. Using empty aliases.")
        record.quarantine()
        return AliasBook()

    if raw is None:
        logger.info(f"Alias file {path} not found. Using empty aliases.")
        return AliasBook()

    try:
        book = AliasBook.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Invalid alias file {path}: {e}. Using empty aliases.")
        record.quarantine()
        return AliasBook()

    book.bookmakers = {k.upper(): v for k, v in book.bookmakers.items()}
    book.sports = {k.upper(): v for k, v in book.sports.items()}
    return book


def save_aliases(path: Path, book: AliasBook) -> None:
    """Atomically save aliases.

    Raises:
        PersistenceError: If the file could not be written
    """
    RecordFile(path).save(book.model_dump(mode="json"))
    logger.info(
        f"Saved {len(book.bookmakers)} bookmaker and {len(book.sports)} sport aliases"
    )
