# plms_diffusion/configs/scheduler.py
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List
import logging

from ..core.config import ConfigManager

logger = logging.getLogger(__name__)

# Keys a config section may carry that are not scheduler parameters
_SECTION_KEYS = ("type", "name")

@dataclass
class PNDMSchedulerConfig:
    """
    Configuration for the PLMS scheduler.

    Mirrors the constructor of ``PNDMScheduler``; the defaults are the
    Stable Diffusion v1 training schedule with 50 inference steps.
    """
    num_inference_steps: int = 50  # Denoising steps at inference
    num_train_timesteps: int = 1000  # Diffusion steps used in training
    beta_schedule: str = "scaled_linear"  # "linear", "scaled_linear"
    beta_start: float = 0.00085  # First beta of the training schedule
    beta_end: float = 0.012  # Last beta of the training schedule
    prediction_type: str = "epsilon"  # "epsilon", "sample", "v_prediction"
    steps_offset: int = 1  # Added to every inference timestep

    SCHEMA = {
        "num_inference_steps": {"type": "integer"},
        "num_train_timesteps": {"type": "integer"},
        "beta_schedule": {"type": "string", "choices": ["linear", "scaled_linear"]},
        "beta_start": {"type": "number"},
        "beta_end": {"type": "number"},
        "prediction_type": {"type": "string", "choices": ["epsilon", "sample", "v_prediction"]},
        "steps_offset": {"type": "integer"},
    }

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "PNDMSchedulerConfig":
        """Build from a config section, ignoring keys that are not parameters."""
        names = {f.name for f in fields(cls)}
        unknown = sorted(k for k in config if k not in names and k not in _SECTION_KEYS)
        if unknown:
            logger.warning(f"Ignoring unknown scheduler config keys: {unknown}")
        return cls(**{k: v for k, v in config.items() if k in names})

    @classmethod
    def from_file(cls, path, **overrides) -> "PNDMSchedulerConfig":
        """Load a JSON or YAML file, applying ``overrides`` on top."""
        config = ConfigManager.merge_configs(ConfigManager.load_config(path), overrides)
        return cls.from_dict(config)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> List[str]:
        """Validate configuration for potential issues."""
        issues = ConfigManager.validate_config(self.to_dict(), self.SCHEMA)
        if issues:
            return issues

        if self.num_inference_steps < 1:
            issues.append("num_inference_steps must be at least 1")
        if self.num_train_timesteps < 2:
            issues.append("num_train_timesteps must be at least 2")
        if self.num_inference_steps > self.num_train_timesteps:
            issues.append("num_inference_steps cannot exceed num_train_timesteps")
        if self.beta_start <= 0 or self.beta_end <= 0:
            issues.append("beta_start and beta_end must be positive")

        return issues


# Stable Diffusion v1.x / v2-base schedule
stable_diffusion_v1 = PNDMSchedulerConfig()

# Original DDPM linear schedule
linear_ddpm = PNDMSchedulerConfig(
    beta_schedule="linear",
    beta_start=0.0001,
    beta_end=0.02,
)
