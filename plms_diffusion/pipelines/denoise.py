# plms_diffusion/pipelines/denoise.py
import logging
from typing import Callable, Optional

import torch
from tqdm import tqdm

from ..schedulers.base import Scheduler

logger = logging.getLogger(__name__)

# predict(sample, timestep) -> model output at that timestep
PredictFn = Callable[[torch.Tensor, int], torch.Tensor]

class DenoisingLoop:
    """
    Drives a scheduler with a prediction function.

    The loop owns no model: ``predict`` wraps whatever network (and
    guidance) the caller uses. Each scheduled timestep costs exactly one
    ``predict`` call followed by one scheduler ``step``.
    """

    def __init__(self, scheduler: Scheduler, predict: PredictFn):
        """
        Args:
            scheduler: Scheduler to step, reset at the start of every run
            predict: Function returning the model output for a sample and timestep
        """
        self.scheduler = scheduler
        self.predict = predict

    def __call__(
        self,
        latents: torch.Tensor,
        strength: Optional[float] = None,
        noise: Optional[torch.Tensor] = None,
        progress: bool = True,
    ) -> torch.Tensor:
        """
        Run a sampling trajectory.

        Without ``strength``, ``latents`` is the initial noise and the whole
        schedule is run. With ``strength``, ``latents`` is a clean sample
        that is first noised with ``noise`` to the starting timestep of a
        partial run (image-to-image style).

        Args:
            latents: Initial noise, or clean sample when ``strength`` is set
            strength: Fraction of the trajectory to run
            noise: Noise for partial runs, required with ``strength``
            progress: Show a tqdm progress bar

        Returns:
            Denoised latents
        """
        scheduler = self.scheduler
        scheduler.reset()

        if strength is None:
            latents = latents * scheduler.init_noise_sigma
        else:
            if noise is None:
                raise ValueError("noise is required when strength is set")
            latents = scheduler.add_noise(latents, [noise], strength)[0]

        timesteps = scheduler.calculate_timesteps(strength)
        logger.info(f"Running denoising loop with {len(timesteps)} steps")

        for t in tqdm(timesteps, desc="Denoising", disable=not progress):
            with torch.no_grad():
                model_output = self.predict(latents, t)
            latents = scheduler.step(model_output, t, latents)

        return latents
