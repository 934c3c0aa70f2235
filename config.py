"""
Configuration loader for the Offline Subtitle Generator.
Loads from config.yaml and allows CLI argument overrides.
"""

import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class AudioConfig:
    sample_rate: int = 16000


@dataclass
class VADConfig:
    threshold: float = 0.5
    min_speech_sec: float = 0.25
    min_silence_sec: float = 0.3
    padding_sec: float = 0.2


@dataclass
class ASRConfig:
    model_dir: str = "models/paraformer"
    model_file: str = "model_quant.onnx"
    config_file: str = "config.yaml"
    mvn_file: str = "am.mvn"
    batch_size: int = 2
    threads: int = 2


@dataclass
class ThreadingConfig:
    enable_vad: bool = True
    max_cpu_percent: int = 70  # 0 = no throttling
    throttle_check_interval: float = 2.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level application configuration."""
    audio: AudioConfig = field(default_factory=AudioConfig)
    vad: VADConfig = field(default_factory=VADConfig)
    asr: ASRConfig = field(default_factory=ASRConfig)
    threading: ThreadingConfig = field(default_factory=ThreadingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def update_from_args(self, args):
        """Override config values from CLI arguments."""
        if getattr(args, "model_dir", None):
            self.asr.model_dir = str(args.model_dir)
        if getattr(args, "threads", None):
            self.asr.threads = args.threads
        if getattr(args, "max_cpu", None) is not None:
            self.threading.max_cpu_percent = args.max_cpu
        if getattr(args, "no_vad", False):
            self.threading.enable_vad = False


def _dict_to_dataclass(cls, data: dict):
    """Convert a dict to a dataclass, ignoring unknown keys."""
    if data is None:
        return cls()
    field_names = {f.name for f in cls.__dataclass_fields__.values()}
    filtered = {k: v for k, v in data.items() if k in field_names}
    return cls(**filtered)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.
    Falls back to defaults if file is missing.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"Config file not found at {path}, using defaults.")
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config must be a YAML mapping at top-level: {path}")

    config = AppConfig(
        audio=_dict_to_dataclass(AudioConfig, raw.get("audio")),
        vad=_dict_to_dataclass(VADConfig, raw.get("vad")),
        asr=_dict_to_dataclass(ASRConfig, raw.get("asr")),
        threading=_dict_to_dataclass(ThreadingConfig, raw.get("threading")),
        logging=_dict_to_dataclass(LoggingConfig, raw.get("logging")),
    )

    logger.info(f"Configuration loaded from {path}")
    return config
