"""Run state, active settings and roster (idle <-> running)."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from core.activity_log import ActivityLog
from core.config import BotSettings
from core.matcher import Client, build_roster
from core.selection import ConversationSelection


class RunStateController:
    """Owns the idle/running flag and the configuration the router reads.

    Each mutator replaces whole objects rather than editing them in place, so
    a reader always sees one consistent snapshot.
    """

    def __init__(
        self,
        activity: ActivityLog,
        settings: Optional[BotSettings] = None,
        empty_selection: str = "all",
    ) -> None:
        self._activity = activity
        self.running = False
        self.settings = settings or BotSettings()
        self.roster: List[Client] = []
        self.selection = ConversationSelection(empty_policy=empty_selection)

    def start(self, settings: Optional[Mapping[str, Any]], clients: Optional[Iterable[dict]]) -> BotSettings:
        """Install settings and roster, then switch to running.

        Validation happens before any state changes, so a rejected payload
        leaves the previous configuration in place.
        """

        new_settings = self.settings.merged(settings or {})
        roster = build_roster(clients or [], arabic=new_settings.normalize_arabic)

        self.settings = new_settings
        self.roster = roster
        self.running = True
        self._activity.record("bot_started", clients=len(roster), settings=new_settings.as_dict())
        return new_settings

    def stop(self) -> None:
        # Queued items stay; the dispatcher's running gate holds them.
        self.running = False
        self._activity.record("bot_stopped")

    def select(self, ids: Iterable[str]) -> ConversationSelection:
        self.selection = ConversationSelection.of(ids, empty_policy=self.selection.empty_policy)
        self._activity.record("groups_selected", idsCount=len(self.selection.ids))
        return self.selection
