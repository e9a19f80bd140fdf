from typing import Optional

from burbs.models import normalize_name


class TeamMembership:
    """Athlete display name -> team label, case-insensitive.

    ``teams`` keeps config order; aggregate outputs list teams in that order.
    """

    def __init__(self, teams: dict):
        self.teams = list(teams)
        self._by_athlete = {}
        for team, athletes in teams.items():
            for athlete in athletes or []:
                self._by_athlete[normalize_name(athlete)] = team

    @classmethod
    def from_config(cls, config: dict) -> "TeamMembership":
        teams = config.get("teams") or {}
        if not teams:
            raise KeyError("No teams configured")
        return cls(teams)

    def team_for(self, athlete_name: str) -> Optional[str]:
        return self._by_athlete.get(normalize_name(athlete_name))

    def configured_athletes(self) -> list[str]:
        return list(self._by_athlete)
