# plms_diffusion/schedulers/base.py
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

import torch

from .karras import convert_to_karras, convert_to_timesteps
from .schedule import NoiseSchedule, sqrt_alpha_beta
from .tensor_ops import weighted_sum


class Scheduler(ABC):
    """
    Base interface for discrete-time diffusion schedulers.

    A scheduler owns a precomputed noise schedule and turns the model's
    prediction at one timestep into the sample at the next, less noisy
    timestep. It never calls the model itself. Implementations set
    ``self.schedule`` and implement ``set_timesteps`` and ``step``.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize scheduler with configuration.

        Args:
            config: Scheduler configuration
        """
        self.config = config or {}
        self.schedule: Optional[NoiseSchedule] = None

    @abstractmethod
    def set_timesteps(self, num_inference_steps: int):
        """
        Set timesteps for inference.

        Args:
            num_inference_steps: Number of steps for inference
        """
        pass

    @abstractmethod
    def reset(self):
        """Discard per-run state so a new sampling run can start."""
        pass

    @abstractmethod
    def step(
        self,
        model_output: torch.Tensor,
        timestep: int,
        sample: torch.Tensor,
        return_dict: bool = False,
    ) -> Union[torch.Tensor, Dict[str, torch.Tensor]]:
        """
        Perform a single denoising step.

        Args:
            model_output: Output from diffusion model
            timestep: Current timestep
            sample: Current sample (noisy latent)
            return_dict: Whether to return as dict

        Returns:
            Sample at the previous timestep
        """
        pass

    @property
    def num_train_timesteps(self) -> int:
        return self.schedule.num_train_timesteps

    @property
    def num_inference_steps(self) -> int:
        return self.schedule.num_inference_steps

    @property
    def timesteps(self) -> List[int]:
        """Training timesteps indexed by inference step."""
        return list(self.schedule.timesteps)

    @property
    def betas(self) -> torch.Tensor:
        return self.schedule.betas

    @property
    def alphas(self) -> torch.Tensor:
        return self.schedule.alphas

    @property
    def alphas_cumprod(self) -> torch.Tensor:
        return self.schedule.alphas_cumprod

    @property
    def init_noise_sigma(self) -> float:
        """
        Get initial noise sigma.

        Returns:
            Initial noise level
        """
        return self.schedule.init_noise_sigma

    @staticmethod
    def weighted_sum(weights: Sequence[float], values: Sequence[torch.Tensor]) -> torch.Tensor:
        return weighted_sum(weights, values)

    def calculate_timesteps(self, strength: Optional[float] = None) -> List[int]:
        """
        Timesteps to run for a given strength.

        Args:
            strength: Fraction of the trajectory to denoise, ``None`` for all

        Returns:
            Suffix of ``timesteps`` starting where the run begins
        """
        if strength is None:
            return self.timesteps
        return self.timesteps[self.schedule.start_step(strength):]

    def add_noise(
        self,
        original_sample: torch.Tensor,
        noise: Union[torch.Tensor, Sequence[torch.Tensor]],
        strength: float,
    ) -> List[torch.Tensor]:
        """
        Noise a clean sample up to the first timestep of a partial run.

        Args:
            original_sample: Clean sample, e.g. an encoded init image
            noise: One or more noise tensors shaped like ``original_sample``
            strength: Fraction of the trajectory that will be denoised

        Returns:
            One noisy sample per noise tensor
        """
        if isinstance(noise, torch.Tensor):
            noise = [noise]

        start_step = self.schedule.start_step(strength)
        alpha_prod_t = self.schedule.alpha_prod(self.schedule.timesteps[start_step])
        sqrt_alpha_prod, sqrt_beta_prod = sqrt_alpha_beta(alpha_prod_t)

        return [
            weighted_sum([sqrt_alpha_prod, sqrt_beta_prod], [original_sample, n])
            for n in noise
        ]

    @staticmethod
    def convert_to_karras(sigmas, num_steps: int, rho: float = 7.0) -> torch.Tensor:
        return convert_to_karras(sigmas, num_steps, rho=rho)

    @staticmethod
    def convert_to_timesteps(sigmas, log_sigmas) -> torch.Tensor:
        return convert_to_timesteps(sigmas, log_sigmas)
