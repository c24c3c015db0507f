"""Tests for the configuration system."""

import pytest
import structlog
from structlog.testing import capture_logs

from intake_agents.config import (
    IntakeConfig,
    LLMConfig,
    LLMProvider,
    OcrConfig,
    PipelineConfig,
    configure_logging,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of the defaults."""
    for name in (
        "INTAKE_ENV",
        "INTAKE_LOG_LEVEL",
        "INTAKE_LLM_API_KEY",
        "INTAKE_LLM_MODEL",
        "INTAKE_OCR_ENABLED",
        "INTAKE_PIPELINE_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLLMConfig:
    """Test suite for LLMConfig."""

    def test_default_values(self):
        """LLMConfig should default to Anthropic with a bounded call."""
        config = LLMConfig()

        assert config.provider == LLMProvider.ANTHROPIC
        assert config.temperature == 0.0
        assert config.max_tokens == 1024
        assert config.timeout == 60.0
        assert config.max_document_chars == 15000

    def test_temperature_validation(self):
        """Temperature should be between 0.0 and 1.0."""
        LLMConfig(temperature=0.0)
        LLMConfig(temperature=1.0)

        with pytest.raises(ValueError):
            LLMConfig(temperature=-0.1)

        with pytest.raises(ValueError):
            LLMConfig(temperature=1.1)

    def test_model_validation(self):
        """Model name cannot be empty and is stripped."""
        with pytest.raises(ValueError):
            LLMConfig(model="   ")

        assert LLMConfig(model="  claude-test  ").model == "claude-test"

    def test_max_tokens_validation(self):
        """Max tokens must be positive and within limits."""
        with pytest.raises(ValueError):
            LLMConfig(max_tokens=0)

        with pytest.raises(ValueError):
            LLMConfig(max_tokens=8193)

    def test_from_environment(self, monkeypatch):
        """LLMConfig should load from INTAKE_LLM_ variables."""
        monkeypatch.setenv("INTAKE_LLM_MODEL", "claude-from-env")
        monkeypatch.setenv("INTAKE_LLM_API_KEY", "env-api-key")
        monkeypatch.setenv("INTAKE_LLM_TIMEOUT", "15")

        config = LLMConfig()

        assert config.model == "claude-from-env"
        assert config.api_key == "env-api-key"
        assert config.timeout == 15.0


class TestOcrConfig:
    """Test suite for OcrConfig."""

    def test_default_values(self):
        """OCR is enabled with a 100 character PyPDF2 floor."""
        config = OcrConfig()

        assert config.enabled is True
        assert config.min_text_chars == 100
        assert config.storage_dir is None

    def test_disable_from_environment(self, monkeypatch):
        """INTAKE_OCR_ENABLED=false should disable OCR."""
        monkeypatch.setenv("INTAKE_OCR_ENABLED", "false")
        assert OcrConfig().enabled is False


class TestPipelineConfig:
    """Test suite for PipelineConfig."""

    def test_default_values(self):
        """PipelineConfig defaults match the intake thresholds."""
        config = PipelineConfig()

        assert config.max_retries == 3
        assert config.auto_apply_threshold == 0.85
        assert config.docai_accept_threshold == 0.75
        assert config.rules_accept_threshold == 0.65
        assert config.batch_size == 10
        assert config.worker_count == 1
        assert config.extract_facts is True

    def test_max_retries_validation(self):
        """Max retries should be within valid range."""
        with pytest.raises(ValueError):
            PipelineConfig(max_retries=-1)

        with pytest.raises(ValueError):
            PipelineConfig(max_retries=11)

    def test_threshold_validation(self):
        """Thresholds are probabilities."""
        with pytest.raises(ValueError):
            PipelineConfig(auto_apply_threshold=1.5)

    def test_worker_count_validation(self):
        """At least one worker is required."""
        with pytest.raises(ValueError):
            PipelineConfig(worker_count=0)

    def test_from_environment(self, monkeypatch):
        """PipelineConfig should load from INTAKE_PIPELINE_ variables."""
        monkeypatch.setenv("INTAKE_PIPELINE_MAX_RETRIES", "5")
        monkeypatch.setenv("INTAKE_PIPELINE_EXTRACT_FACTS", "false")

        config = PipelineConfig()

        assert config.max_retries == 5
        assert config.extract_facts is False


class TestIntakeConfig:
    """Test suite for IntakeConfig."""

    def test_default_values(self):
        """IntakeConfig should nest every section with defaults."""
        config = IntakeConfig()

        assert config.env == "development"
        assert config.log_level == "INFO"
        assert config.llm.provider == LLMProvider.ANTHROPIC
        assert config.ocr.enabled is True
        assert config.pipeline.max_retries == 3

    def test_custom_nested_config(self):
        """Should accept custom nested configuration."""
        config = IntakeConfig(
            ocr=OcrConfig(enabled=False),
            pipeline=PipelineConfig(worker_count=4),
        )

        assert config.ocr.enabled is False
        assert config.pipeline.worker_count == 4

    def test_env_validation(self):
        """Environment name is normalized and validated."""
        assert IntakeConfig(env="PRODUCTION").env == "production"

        with pytest.raises(ValueError):
            IntakeConfig(env="qa")

    def test_log_level_validation(self):
        """Log level is upper-cased and validated."""
        assert IntakeConfig(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValueError):
            IntakeConfig(log_level="verbose")

    def test_loads_from_dotenv_file(self, tmp_path, monkeypatch):
        """IntakeConfig should load every section from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text(
            "INTAKE_ENV=staging\n"
            "INTAKE_LOG_LEVEL=ERROR\n"
            "INTAKE_LLM_MODEL=test-model\n"
            "INTAKE_PIPELINE_MAX_RETRIES=7\n"
        )
        monkeypatch.chdir(tmp_path)

        config = IntakeConfig()

        assert config.env == "staging"
        assert config.log_level == "ERROR"
        assert config.llm.model == "test-model"
        assert config.pipeline.max_retries == 7

    def test_is_debug(self):
        """Debug is on via pipeline debug_mode or DEBUG log level."""
        assert IntakeConfig(pipeline=PipelineConfig(debug_mode=True)).is_debug
        assert IntakeConfig(log_level="DEBUG").is_debug
        assert not IntakeConfig().is_debug


class TestConfigureLogging:
    """Tests for applying the log level to structlog."""

    @pytest.fixture(autouse=True)
    def reset_structlog(self):
        yield
        structlog.reset_defaults()

    def _emitted(self) -> list[str]:
        logger = structlog.get_logger()
        with capture_logs() as logs:
            logger.debug("debug_event")
            logger.info("info_event")
            logger.warning("warning_event")
        return [entry["event"] for entry in logs]

    def test_log_level_filters(self):
        """Calls below log_level are dropped."""
        configure_logging(IntakeConfig(log_level="WARNING"))
        assert self._emitted() == ["warning_event"]

    def test_default_level_is_info(self):
        """The default config drops debug calls."""
        configure_logging(IntakeConfig())
        assert self._emitted() == ["info_event", "warning_event"]

    def test_debug_mode_overrides_level(self):
        """Pipeline debug_mode lowers the level to DEBUG."""
        configure_logging(IntakeConfig(log_level="ERROR", pipeline=PipelineConfig(debug_mode=True)))
        assert self._emitted() == ["debug_event", "info_event", "warning_event"]
