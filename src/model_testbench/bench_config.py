"""
Testbench Configuration

Manages loading from environment variables and default values.
"""

import os
from dataclasses import dataclass, field, asdict


def _env_bool(key: str, default: bool) -> bool:
    """Convert an environment variable to bool"""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to an integer.")


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to a number.")


def _env_str(key: str, default: str) -> str:
    """Get an environment variable as a string"""
    return os.environ.get(key, default)


@dataclass
class PathsConfig:
    """Directories used by test staging and plan/schema loading"""
    source_files_dir: str = "test_source_files"
    run_folders_dir: str = "test_run_folders"
    execution_plans_dir: str = "execution_plans"
    response_formats_dir: str = "response_formats"
    expected_result_file: str = "tts_dialogue_expected_result.json"  # inside source_files_dir
    reference_story_file: str = "tts_storia.txt"  # inside the run's working folder


@dataclass
class TimeoutConfig:
    """Invocation timeouts (seconds)"""
    warmup_seconds: int = 90
    evaluator_seconds: int = 60


@dataclass
class WriterConfig:
    """Narrative ("writer") test settings"""
    temperature: float = 0.7
    max_tokens: int = 8000
    default_context_window: int = 32768
    pass_threshold: float = 4.0
    language: str = "Italian"


@dataclass
class TtsConfig:
    """Structured-schema ("tts") test settings"""
    max_attempts: int = 3
    pass_threshold: int = 2


@dataclass
class ProviderConfig:
    """Model provider endpoints and credentials"""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434/v1"
    lmstudio_base_url: str = "http://localhost:1234/v1"
    lmstudio_api_key: str = "lm-studio"
    anthropic_api_key: str = ""
    gcp_project_id: str = ""
    gcp_location: str = "global"
    max_retries: int = 3
    max_tool_rounds: int = 25


@dataclass
class DatabaseConfig:
    """Test store location"""
    url: str = "sqlite:///testbench.db"
    echo: bool = False


@dataclass
class BenchConfig:
    """Overall testbench configuration"""
    paths: PathsConfig = field(default_factory=PathsConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    writer: WriterConfig = field(default_factory=WriterConfig)
    tts: TtsConfig = field(default_factory=TtsConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {"bench_config": asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "BenchConfig":
        """Create from dictionary (handles presence/absence of bench_config key)"""
        config_data = data.get("bench_config", data)
        return cls(
            paths=PathsConfig(**config_data.get("paths", {})),
            timeouts=TimeoutConfig(**config_data.get("timeouts", {})),
            writer=WriterConfig(**config_data.get("writer", {})),
            tts=TtsConfig(**config_data.get("tts", {})),
            providers=ProviderConfig(**config_data.get("providers", {})),
            database=DatabaseConfig(**config_data.get("database", {})),
        )


def load_config() -> BenchConfig:
    """
    Load configuration from environment variables

    Uses default values when environment variables are not set.

    Returns:
        BenchConfig
    """
    paths = PathsConfig(
        source_files_dir=_env_str("TESTBENCH_SOURCE_FILES_DIR", "test_source_files"),
        run_folders_dir=_env_str("TESTBENCH_RUN_FOLDERS_DIR", "test_run_folders"),
        execution_plans_dir=_env_str("TESTBENCH_EXECUTION_PLANS_DIR", "execution_plans"),
        response_formats_dir=_env_str("TESTBENCH_RESPONSE_FORMATS_DIR", "response_formats"),
        expected_result_file=_env_str("TESTBENCH_EXPECTED_RESULT_FILE", "tts_dialogue_expected_result.json"),
        reference_story_file=_env_str("TESTBENCH_REFERENCE_STORY_FILE", "tts_storia.txt"),
    )
    timeouts = TimeoutConfig(
        warmup_seconds=_env_int("TESTBENCH_WARMUP_TIMEOUT_SECONDS", 90),
        evaluator_seconds=_env_int("TESTBENCH_EVALUATOR_TIMEOUT_SECONDS", 60),
    )
    writer = WriterConfig(
        temperature=_env_float("TESTBENCH_WRITER_TEMPERATURE", 0.7),
        max_tokens=_env_int("TESTBENCH_WRITER_MAX_TOKENS", 8000),
        default_context_window=_env_int("TESTBENCH_WRITER_CONTEXT_WINDOW", 32768),
        pass_threshold=_env_float("TESTBENCH_WRITER_PASS_THRESHOLD", 4.0),
        language=_env_str("TESTBENCH_WRITER_LANGUAGE", "Italian"),
    )
    tts = TtsConfig(
        max_attempts=_env_int("TESTBENCH_TTS_MAX_ATTEMPTS", 3),
        pass_threshold=_env_int("TESTBENCH_TTS_PASS_THRESHOLD", 2),
    )
    providers = ProviderConfig(
        openai_base_url=_env_str("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        openai_api_key=_env_str("OPENAI_API_KEY", ""),
        ollama_base_url=_env_str("OLLAMA_BASE_URL", "http://localhost:11434/v1"),
        lmstudio_base_url=_env_str("LMSTUDIO_BASE_URL", "http://localhost:1234/v1"),
        lmstudio_api_key=_env_str("LMSTUDIO_API_KEY", "lm-studio"),
        anthropic_api_key=_env_str("ANTHROPIC_API_KEY", ""),
        gcp_project_id=_env_str("GCP_PROJECT_ID", ""),
        gcp_location=_env_str("GCP_LOCATION", "global"),
        max_retries=_env_int("TESTBENCH_PROVIDER_MAX_RETRIES", 3),
        max_tool_rounds=_env_int("TESTBENCH_MAX_TOOL_ROUNDS", 25),
    )
    database = DatabaseConfig(
        url=_env_str("TESTBENCH_DATABASE_URL", "sqlite:///testbench.db"),
        echo=_env_bool("TESTBENCH_DATABASE_ECHO", False),
    )
    return BenchConfig(
        paths=paths,
        timeouts=timeouts,
        writer=writer,
        tts=tts,
        providers=providers,
        database=database,
    )
