"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class TimingConfig:
    speech_time_sec: int = 7 * 60 + 20
    prep_time_sec: int = 15 * 60


@dataclass
class SessionConfig:
    min_completed_speakers: int = 0
    title_max_len: int = 30


@dataclass
class ModelConfig:
    name: str
    sdk: str
    api_key_env: str
    motion_model: str
    speech_model: str
    ranking_model: str
    timeout_sec: int
    max_tokens: int
    transcription_model: str | None = None
    search_grounding: bool = False
    base_url: str | None = None


@dataclass
class PromptsConfig:
    motion_analysis: str
    speech_evaluation: str
    ranking: str
    universal_criteria: str = ""
    speech_system: str = ""
    ranking_system: str = ""


@dataclass
class DefaultsConfig:
    adjudicator: str
    output_dir: Path


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    timing: TimingConfig
    session: SessionConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    available_providers: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Raises ValueError if a duration or the completion minimum is out of range.
    Logs providers with missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        adjudicator=str(defaults_raw["adjudicator"]),
        output_dir=Path(defaults_raw["output_dir"]),
    )

    timing_raw = raw.get("timing", {})
    timing = TimingConfig(
        speech_time_sec=int(timing_raw.get("speech_time_sec", TimingConfig.speech_time_sec)),
        prep_time_sec=int(timing_raw.get("prep_time_sec", TimingConfig.prep_time_sec)),
    )
    if timing.speech_time_sec <= 0 or timing.prep_time_sec < 0:
        raise ValueError(
            f"Invalid timing: speech_time_sec={timing.speech_time_sec}, prep_time_sec={timing.prep_time_sec}"
        )

    session_raw = raw.get("session", {})
    session = SessionConfig(
        min_completed_speakers=int(
            session_raw.get("min_completed_speakers", SessionConfig.min_completed_speakers)
        ),
        title_max_len=int(session_raw.get("title_max_len", SessionConfig.title_max_len)),
    )
    if not 0 <= session.min_completed_speakers <= 8:
        raise ValueError(f"min_completed_speakers must be 0-8, got {session.min_completed_speakers}")

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        motion_analysis=prompts_raw["motion_analysis"],
        speech_evaluation=prompts_raw["speech_evaluation"],
        ranking=prompts_raw["ranking"],
        universal_criteria=str(prompts_raw.get("universal_criteria", "")),
        speech_system=str(prompts_raw.get("speech_system", "")),
        ranking_system=str(prompts_raw.get("ranking_system", "")),
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            api_key_env=model_raw["api_key_env"],
            motion_model=model_raw["motion_model"],
            speech_model=model_raw["speech_model"],
            ranking_model=model_raw["ranking_model"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            transcription_model=model_raw.get("transcription_model"),
            search_grounding=bool(model_raw.get("search_grounding", False)),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Adjudicator available: %s", provider_name)
        else:
            logger.info(
                "Adjudicator skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        timing=timing,
        session=session,
        models=models,
        prompts=prompts,
        available_providers=available_providers,
    )
