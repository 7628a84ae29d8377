"""Persona library backing the system prompt."""

import time
from typing import Callable, List, Optional

from ..utils.logging import logger
from ..models import Persona


class PersonaLibrary:
    """Holds the available personas and which one is active.

    ``on_change`` is called with ``(personas, active_id)`` after every
    mutation so the host can persist the library.
    """

    def __init__(self,
                 personas: List[Persona],
                 active_id: Optional[str] = None,
                 on_change: Optional[Callable[[List[Persona], Optional[str]], None]] = None):
        self._personas = list(personas)
        self.on_change = on_change
        self.active_id = active_id if self.get(active_id) else None
        if self.active_id is None and self._personas:
            self.active_id = self._personas[0].id

    @property
    def personas(self) -> List[Persona]:
        return list(self._personas)

    @property
    def active(self) -> Optional[Persona]:
        return self.get(self.active_id)

    def get(self, persona_id: Optional[str]) -> Optional[Persona]:
        for persona in self._personas:
            if persona.id == persona_id:
                return persona
        return None

    def select(self, persona_id: str) -> Persona:
        persona = self.get(persona_id)
        if persona is None:
            raise KeyError(f"Unknown persona: {persona_id}")
        self.active_id = persona.id
        self._notify()
        return persona

    def add(self, title: str, content: str) -> Optional[Persona]:
        """Add a persona; blank title or content is ignored."""
        if not title.strip() or not content.strip():
            logger.warning("Persona title and content must both be non-empty")
            return None
        persona = Persona(id=str(int(time.time() * 1000)), title=title.strip(), content=content.strip())
        while self.get(persona.id):
            persona = Persona(id=str(int(persona.id) + 1), title=persona.title, content=persona.content)
        self._personas.append(persona)
        self._notify()
        return persona

    def delete(self, persona_id: str) -> bool:
        persona = self.get(persona_id)
        if persona is None:
            return False
        self._personas.remove(persona)
        if self.active_id == persona_id:
            self.active_id = None
        self._notify()
        return True

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self.personas, self.active_id)
