"""Configuration management for testintel."""

import json
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

CONFIG_NAMES = ("testintel.json", ".testintel.json")


class EngineConfig(BaseModel):
    """History retention and prediction tuning."""

    max_history_per_test: int = Field(default=100, description="Executions retained per test")
    min_history_for_insights: int = Field(default=3, description="Executions needed before insights are reported")
    min_history_for_prediction: int = Field(default=2, description="Executions needed before a prediction uses history")
    recent_window: int = Field(default=10, description="Recent executions used for the prediction failure rate")
    fail_rate_threshold: float = Field(default=0.3, description="Recent failure rate at which a test is predicted to fail")
    file_correlation_threshold: float = Field(default=0.5, description="Changed-file correlation at which a test is predicted to fail")

    @field_validator("max_history_per_test", "recent_window")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("fail_rate_threshold", "file_correlation_threshold")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Threshold cannot be negative")
        return v


class PatternConfig(BaseModel):
    """Pattern detection thresholds."""

    min_history: int = Field(default=3, description="Executions needed before patterns are detected")
    slow_threshold_ms: float = Field(default=5000.0, description="Average duration above which a test is slow")
    flaky_transition_ratio: float = Field(default=0.3, description="Share of pass/fail toggles that marks a test flaky")
    always_fails_ratio: float = Field(default=0.9, description="Failure rate above which a test always fails")

    @field_validator("flaky_transition_ratio", "always_fails_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("Ratio must be between 0 and 1")
        return v


class CorrelationConfig(BaseModel):
    """Failure correlation tracking."""

    window_seconds: float = Field(default=300.0, description="Failures closer than this are considered co-occurring")
    increment: float = Field(default=0.1, description="Score added per co-occurring failure")
    report_threshold: float = Field(default=0.5, description="Minimum score for a correlated test to be reported")
    strong_threshold: float = Field(default=0.8, description="Score above which tests are considered coupled")
    max_results: int = Field(default=5, description="Maximum number of correlated tests reported")

    @field_validator("window_seconds", "increment")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


class StorageConfig(BaseModel):
    """Persisted state location."""

    data_dir: str = Field(default=".testintel", description="Directory holding persisted state")
    filename: str = Field(default="intelligence.json", description="State file name")
    autosave: bool = Field(default=True, description="Flush state after every recorded execution")


class GitConfig(BaseModel):
    """Git integration configuration."""

    enabled: bool = Field(default=True, description="Record the current commit with each execution")


class IntelligenceConfig(BaseModel):
    """Main configuration for testintel."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    git: GitConfig = Field(default_factory=GitConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "IntelligenceConfig":
        """Read a JSON configuration file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not valid JSON or fails validation
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return cls.model_validate(json.loads(path.read_text(encoding="utf-8")))

    @classmethod
    def find_and_load(cls, start_dir: Path | str | None = None) -> "IntelligenceConfig":
        """Load the nearest configuration file at or above ``start_dir``."""
        start = Path(start_dir or Path.cwd()).resolve()
        for directory in (start, *start.parents):
            for name in CONFIG_NAMES:
                candidate = directory / name
                if candidate.is_file():
                    return cls.from_file(candidate)

        raise FileNotFoundError(
            "No configuration file found. Create testintel.json or run 'testintel init'"
        )

    @classmethod
    def load_or_default(cls, path: Path | str | None = None) -> "IntelligenceConfig":
        """Load an explicit or discovered config, falling back to defaults."""
        if path is not None:
            return cls.from_file(path)
        try:
            return cls.find_and_load()
        except FileNotFoundError:
            return cls()

    def to_file(self, path: Path | str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.model_dump(), indent=2) + "\n", encoding="utf-8")

    def get_absolute_paths(self, base_dir: Path | str | None = None) -> dict[str, Path]:
        """Resolve the state directory and file against ``base_dir`` (default: cwd)."""
        data_dir = (Path(base_dir or Path.cwd()) / self.storage.data_dir).resolve()
        return {
            "data_dir": data_dir,
            "state_file": data_dir / self.storage.filename,
        }


def get_default_config() -> IntelligenceConfig:
    """Return a default configuration."""
    return IntelligenceConfig()


def create_example_config(output_path: Path | str) -> Path:
    """Write the default configuration to ``output_path``."""
    path = Path(output_path)
    get_default_config().to_file(path)
    return path
