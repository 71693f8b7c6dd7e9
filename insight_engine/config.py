# insight_engine/config.py
import os
import json
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict

logger = logging.getLogger(__name__)

@dataclass
class InferenceConfig:
    """Configuration for column type inference"""
    SAMPLE_SIZE: int
    NUMERIC_RATIO: float
    DATE_RATIO: float
    BOOLEAN_RATIO: float
    NAME_MATCH_CONFIDENCE: float
    MIN_DATE_YEAR: int
    MAX_SAMPLE_VALUES: int

@dataclass
class StatisticsConfig:
    """Configuration for metric computation"""
    MIN_CORRELATION_PAIRS: int
    STRONG_CORRELATION: float
    MODERATE_CORRELATION: float
    TOP_CATEGORIES: int

@dataclass
class ValidationConfig:
    """Configuration for data validation"""
    MIN_FILL_RATE: float
    FEW_ROWS_THRESHOLD: int
    ID_WARNING_MIN_ROWS: int
    DUPLICATE_SAMPLE_SIZE: int
    COMPLETENESS_WARNING: float

@dataclass
class ReportConfig:
    """Configuration for report assembly"""
    MAX_NUMERICAL_RESULTS: int
    MAX_CATEGORICAL_RESULTS: int
    MAX_TEMPORAL_RESULTS: int
    MAX_NUMERICAL_INSIGHTS: int
    MAX_CATEGORICAL_INSIGHTS: int
    QUALITY_SAMPLE_SIZE: int
    DUPLICATE_KEY_COLUMNS: int
    EXCELLENT_COMPLETENESS: float
    CLEANING_COMPLETENESS: float
    SAMPLING_ROW_THRESHOLD: int
    SMALL_DATASET_ROWS: int
    HIGH_CONFIDENCE_SHARE: float
    MEDIUM_CONFIDENCE_SHARE: float
    SQL_TABLE_NAME: str
    SQL_ROW_LIMIT: int
    RECENT_DAYS: int

class Config:
    """Central configuration for the insight engine"""

    SECTIONS = ('inference', 'statistics', 'validation', 'report')

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration

        Args:
            config_file: Optional path to JSON config file to override defaults
        """
        self._load_default_config()

        if config_file and os.path.exists(config_file):
            self._load_config_file(config_file)

        self._load_environment_variables()

    def _load_default_config(self):
        """Load default configuration values"""

        self.inference = InferenceConfig(
            SAMPLE_SIZE=20,
            NUMERIC_RATIO=0.8,
            DATE_RATIO=0.7,
            BOOLEAN_RATIO=0.8,
            NAME_MATCH_CONFIDENCE=0.7,
            MIN_DATE_YEAR=1900,
            MAX_SAMPLE_VALUES=5
        )

        self.statistics = StatisticsConfig(
            MIN_CORRELATION_PAIRS=5,
            STRONG_CORRELATION=0.7,
            MODERATE_CORRELATION=0.3,
            TOP_CATEGORIES=10
        )

        self.validation = ValidationConfig(
            MIN_FILL_RATE=0.5,
            FEW_ROWS_THRESHOLD=10,
            ID_WARNING_MIN_ROWS=100,
            DUPLICATE_SAMPLE_SIZE=1000,
            COMPLETENESS_WARNING=90.0
        )

        self.report = ReportConfig(
            MAX_NUMERICAL_RESULTS=3,
            MAX_CATEGORICAL_RESULTS=2,
            MAX_TEMPORAL_RESULTS=1,
            MAX_NUMERICAL_INSIGHTS=2,
            MAX_CATEGORICAL_INSIGHTS=2,
            QUALITY_SAMPLE_SIZE=100,
            DUPLICATE_KEY_COLUMNS=3,
            EXCELLENT_COMPLETENESS=95.0,
            CLEANING_COMPLETENESS=90.0,
            SAMPLING_ROW_THRESHOLD=1000,
            SMALL_DATASET_ROWS=100,
            HIGH_CONFIDENCE_SHARE=0.6,
            MEDIUM_CONFIDENCE_SHARE=0.3,
            SQL_TABLE_NAME="dataset",
            SQL_ROW_LIMIT=1000,
            RECENT_DAYS=30
        )

        # Additional settings
        self.logging_level = "INFO"
        self.debug_mode = False

    def _load_config_file(self, config_file: str):
        """Load configuration from JSON file"""
        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)

            # Update configurations with values from file
            for section, values in config_data.items():
                if section in self.SECTIONS and isinstance(values, dict):
                    config_obj = getattr(self, section)
                    for key, value in values.items():
                        if hasattr(config_obj, key):
                            setattr(config_obj, key, value)
                elif section in ('logging_level', 'debug_mode'):
                    setattr(self, section, values)

        except (OSError, ValueError) as e:
            logger.warning(f"Could not load config file {config_file}: {e}")

    def _load_environment_variables(self):
        """Load configuration from environment variables"""

        if os.getenv("INSIGHT_SAMPLE_SIZE"):
            self.inference.SAMPLE_SIZE = int(os.getenv("INSIGHT_SAMPLE_SIZE"))

        if os.getenv("MIN_CORRELATION_PAIRS"):
            self.statistics.MIN_CORRELATION_PAIRS = int(os.getenv("MIN_CORRELATION_PAIRS"))

        if os.getenv("QUALITY_SAMPLE_SIZE"):
            self.report.QUALITY_SAMPLE_SIZE = int(os.getenv("QUALITY_SAMPLE_SIZE"))

        if os.getenv("SQL_ROW_LIMIT"):
            self.report.SQL_ROW_LIMIT = int(os.getenv("SQL_ROW_LIMIT"))

        # General settings
        if os.getenv("LOG_LEVEL"):
            self.logging_level = os.getenv("LOG_LEVEL")

        if os.getenv("DEBUG_MODE"):
            self.debug_mode = os.getenv("DEBUG_MODE").lower() == 'true'

    def save_config(self, config_file: str):
        """Save current configuration to JSON file"""
        config_dict: Dict[str, Any] = {
            section: asdict(getattr(self, section)) for section in self.SECTIONS
        }
        config_dict['logging_level'] = self.logging_level
        config_dict['debug_mode'] = self.debug_mode

        with open(config_file, 'w') as f:
            json.dump(config_dict, f, indent=2)

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []

        for name in ('NUMERIC_RATIO', 'DATE_RATIO', 'BOOLEAN_RATIO', 'NAME_MATCH_CONFIDENCE'):
            value = getattr(self.inference, name)
            if value <= 0 or value > 1:
                issues.append(f"Invalid inference ratio {name}: {value}")

        if self.inference.SAMPLE_SIZE <= 0:
            issues.append(f"Inference sample size must be > 0: {self.inference.SAMPLE_SIZE}")

        if self.statistics.MIN_CORRELATION_PAIRS < 2:
            issues.append(f"Correlation needs at least 2 pairs: {self.statistics.MIN_CORRELATION_PAIRS}")

        if self.statistics.MODERATE_CORRELATION >= self.statistics.STRONG_CORRELATION:
            issues.append(
                f"Moderate correlation threshold ({self.statistics.MODERATE_CORRELATION}) "
                f"must be below strong threshold ({self.statistics.STRONG_CORRELATION})"
            )

        if self.validation.MIN_FILL_RATE < 0 or self.validation.MIN_FILL_RATE > 1:
            issues.append(f"Invalid minimum fill rate: {self.validation.MIN_FILL_RATE}")

        if self.report.QUALITY_SAMPLE_SIZE <= 0:
            issues.append(f"Quality sample size must be > 0: {self.report.QUALITY_SAMPLE_SIZE}")

        if self.report.MEDIUM_CONFIDENCE_SHARE >= self.report.HIGH_CONFIDENCE_SHARE:
            issues.append(
                f"Medium confidence share ({self.report.MEDIUM_CONFIDENCE_SHARE}) "
                f"must be below high confidence share ({self.report.HIGH_CONFIDENCE_SHARE})"
            )

        if self.report.SQL_ROW_LIMIT <= 0:
            issues.append(f"Invalid SQL row limit: {self.report.SQL_ROW_LIMIT}")

        return issues

    def __str__(self) -> str:
        """String representation of configuration"""
        return f"Config(sample_size={self.inference.SAMPLE_SIZE}, debug={self.debug_mode})"

# Global configuration instance
_config = None

def get_config(config_file: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton pattern)"""
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config

def reload_config(config_file: Optional[str] = None) -> Config:
    """Reload configuration (useful for testing)"""
    global _config
    _config = Config(config_file)
    return _config

# Example configuration file template
CONFIG_TEMPLATE = {
    "inference": {
        "SAMPLE_SIZE": 20,
        "NUMERIC_RATIO": 0.8
    },
    "statistics": {
        "MIN_CORRELATION_PAIRS": 5
    },
    "report": {
        "QUALITY_SAMPLE_SIZE": 100,
        "SQL_ROW_LIMIT": 1000
    },
    "logging_level": "INFO"
}

def create_config_template(output_file: str):
    """Create a configuration template file"""
    with open(output_file, 'w') as f:
        json.dump(CONFIG_TEMPLATE, f, indent=2)
    logger.info(f"Configuration template created: {output_file}")
