"""Pure dataclasses and enums for a British Parliamentary debate. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum


class Team(str, Enum):
    OG = "Opening Government"
    OO = "Opening Opposition"
    CG = "Closing Government"
    CO = "Closing Opposition"


class SpeakerRole(str, Enum):
    PM = "Prime Minister"
    LO = "Leader of Opposition"
    DPM = "Deputy Prime Minister"
    DLO = "Deputy Leader of Opposition"
    MG = "Member of Government"
    MO = "Member of Opposition"
    GW = "Government Whip"
    OW = "Opposition Whip"


class Phase(str, Enum):
    SETUP = "setup"
    PREP = "prep"
    DEBATE = "debate"
    RESULTS = "results"


# Speaking order; the position doubles as the speaker id.
ROSTER: tuple[tuple[SpeakerRole, Team], ...] = (
    (SpeakerRole.PM, Team.OG),
    (SpeakerRole.LO, Team.OO),
    (SpeakerRole.DPM, Team.OG),
    (SpeakerRole.DLO, Team.OO),
    (SpeakerRole.MG, Team.CG),
    (SpeakerRole.MO, Team.CO),
    (SpeakerRole.GW, Team.CG),
    (SpeakerRole.OW, Team.CO),
)

MIN_SCORE = 0.0
MAX_SCORE = 20.0


@dataclass(frozen=True)
class SpeechAudio:
    data: bytes = field(repr=False)
    mime_type: str = "audio/webm"
    filename: str = "speech.webm"


@dataclass(frozen=True)
class MotionContext:
    detected_language: str
    criteria: tuple[str, ...]
    background: str


@dataclass(frozen=True)
class Speaker:
    id: str
    role: SpeakerRole
    team: Team
    speech_time_left: int
    name: str = ""
    is_completed: bool = False
    is_speech_timer_running: bool = False
    transcription: str | None = None
    score: float | None = None
    feedback: str | None = None
    audio: SpeechAudio | None = None   # owned by the capture layer, never inspected


@dataclass(frozen=True)
class SpeechEvaluation:
    transcription: str
    score: float            # 0-20
    feedback: str


@dataclass(frozen=True)
class RankingEntry:
    team: Team
    rank: int
    reasoning: str


@dataclass(frozen=True)
class RankingResult:
    rankings: tuple[RankingEntry, ...]
    overall_adjudication: str


@dataclass
class TeamResult:
    team: Team
    rank: int
    total_score: float
    reasoning: str
    absent_roles: list[SpeakerRole] = field(default_factory=list)
