"""ProfileDirectory: Auflösung party_id → Rolle / Anzeigename, Lehrer-Verfügbarkeit.

Nur lesende Schnittstelle für die Terminplanung; die eigentliche
Profilverwaltung liegt außerhalb dieses Projekts.
"""

from typing import Iterable, Optional

from models.attendance import PartyRole
from models.party import Party, TeacherAvailability
from scheduling.errors import NotFoundError


class ProfileDirectory:
    """In-Memory-Verzeichnis aller bekannten Personen."""

    def __init__(
        self,
        parties: Iterable[Party] = (),
        availability: Iterable[TeacherAvailability] = (),
    ) -> None:
        self._parties: dict[str, Party] = {p.id: p for p in parties}
        self._availability: dict[str, TeacherAvailability] = {
            a.teacher_id: a for a in availability
        }

    def add(self, party: Party) -> None:
        """Fügt eine Person hinzu oder ersetzt sie."""
        self._parties[party.id] = party

    def get(self, party_id: str) -> Party:
        if party_id not in self._parties:
            raise NotFoundError(f"Person '{party_id}' ist nicht bekannt.")
        return self._parties[party_id]

    def role_of(self, party_id: str) -> PartyRole:
        return self.get(party_id).role

    def display_name(self, party_id: str) -> str:
        """Anzeigename; unbekannte IDs werden unverändert zurückgegeben."""
        party = self._parties.get(party_id)
        return party.display_name if party else party_id

    def parties(self, role: Optional[PartyRole] = None) -> list[Party]:
        return [p for p in self._parties.values() if role is None or p.role == role]

    def admin_ids(self) -> list[str]:
        return [p.id for p in self.parties(PartyRole.ADMIN)]

    # ─── Verfügbarkeit ───

    def set_availability(self, availability: TeacherAvailability) -> None:
        self._availability[availability.teacher_id] = availability

    def availability_for(self, teacher_id: str) -> Optional[TeacherAvailability]:
        """None bedeutet: keine Verfügbarkeit hinterlegt → keine Einschränkung."""
        return self._availability.get(teacher_id)

    def all_availability(self) -> list[TeacherAvailability]:
        return list(self._availability.values())

    def __len__(self) -> int:
        return len(self._parties)

    def __repr__(self) -> str:
        return f"ProfileDirectory({len(self._parties)} Personen)"
