"""
Configuration management with typed Pydantic models.

Provides seed, split, resampling and grid parameterization and
environment-aware configuration loading.
"""

from penguin_classifier.config.loader import config_from_dict, load_config
from penguin_classifier.config.settings import (
    DataConfig,
    FeatureConfig,
    ImputationStrategy,
    MLflowConfig,
    ModelConfig,
    OutputConfig,
    PipelineConfig,
    PreprocessingConfig,
    ResamplingConfig,
    ResamplingMethod,
    SplitConfig,
    TrainingConfig,
    TuningConfig,
)

__all__ = [
    "DataConfig",
    "FeatureConfig",
    "ImputationStrategy",
    "MLflowConfig",
    "ModelConfig",
    "OutputConfig",
    "PipelineConfig",
    "PreprocessingConfig",
    "ResamplingConfig",
    "ResamplingMethod",
    "SplitConfig",
    "TrainingConfig",
    "TuningConfig",
    "config_from_dict",
    "load_config",
]
