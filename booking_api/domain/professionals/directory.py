"""
Professional directory - in-memory bio cache

Rebuilt wholesale by the sheet sync whenever the sheet carries bio columns.
Lookups are case-insensitive and never fail: unknown names get a fallback
entry so the frontend can always render a card.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Counselling Psychologist"


@dataclass
class Professional:
    name: str
    title: str = DEFAULT_TITLE
    bio: str = ""
    specializations: list[str] = field(default_factory=list)
    areas: list[str] = field(default_factory=list)
    # card display fields
    experience: str = ""
    languages: str = ""
    mode: str = ""
    price: str = ""
    is_fallback: bool = False

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "title": self.title,
            "bio": self.bio,
            "specializations": self.specializations,
            "areas": self.areas,
            "experience": self.experience,
            "languages": self.languages,
            "mode": self.mode,
            "price": self.price,
        }
        if self.is_fallback:
            data["isFallback"] = True
        return data


class ProfessionalDirectory:
    def __init__(self):
        self._cache: dict[str, Professional] = {}
        self._lock = Lock()
        self.last_sync_at: Optional[str] = None

    def set_professionals(self, entries: Iterable) -> int:
        """Replace the whole directory. Entries need name/title/bio/specializations/areas."""
        replacement: dict[str, Professional] = {}
        for entry in entries:
            name = (getattr(entry, "name", "") or "").strip()
            if not name:
                continue
            specializations = getattr(entry, "specializations", None)
            areas = getattr(entry, "areas", None)
            replacement[name.lower()] = Professional(
                name=name,
                title=getattr(entry, "title", "") or DEFAULT_TITLE,
                bio=getattr(entry, "bio", "") or "",
                specializations=list(specializations) if isinstance(specializations, list) else [],
                areas=list(areas) if isinstance(areas, list) else [],
                experience=getattr(entry, "experience", "") or "",
                languages=getattr(entry, "languages", "") or "",
                mode=getattr(entry, "mode", "") or "",
                price=getattr(entry, "price", "") or "",
            )

        with self._lock:
            self._cache = replacement
            self.last_sync_at = datetime.now(timezone.utc).isoformat()

        logger.info(f"👥 Professional directory updated - {len(replacement)} professional(s) loaded")
        return len(replacement)

    def get_all(self) -> list[Professional]:
        """All professionals sorted A-Z"""
        with self._lock:
            return sorted(self._cache.values(), key=lambda p: p.name.lower())

    def get(self, name: Optional[str]) -> Professional:
        if not name or not name.strip():
            return Professional(name="Unknown", is_fallback=True)
        with self._lock:
            hit = self._cache.get(name.strip().lower())
        return hit or Professional(name=name.strip(), is_fallback=True)

    def is_loaded(self) -> bool:
        with self._lock:
            return bool(self._cache)
