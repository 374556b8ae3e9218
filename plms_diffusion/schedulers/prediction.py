# plms_diffusion/schedulers/prediction.py
"""
Conversions between the parameterizations a diffusion model can predict.

With ``x_t = alpha_t * x0 + sigma_t * eps`` the model may output the noise
``eps`` (epsilon), the clean sample ``x0`` (sample), or the velocity
``v = alpha_t * eps - sigma_t * x0`` (v_prediction). The multistep solver
works on noise residuals and reports denoised-sample estimates.
"""

from enum import Enum
from typing import Union

import torch

from .schedule import NoiseSchedule


class PredictionType(str, Enum):
    """Prediction type of the diffusion model."""

    # Predicting the noise of the diffusion process
    EPSILON = "epsilon"
    # Directly predicting the denoised sample
    SAMPLE = "sample"
    # See section 2.4 of https://imagen.research.google/video/paper.pdf
    V_PREDICTION = "v_prediction"


def _coefficients(schedule: NoiseSchedule, timestep: int, model_output: torch.Tensor, sample: torch.Tensor):
    if model_output.shape != sample.shape:
        raise ValueError(
            f"Model output shape {tuple(model_output.shape)} does not match sample shape {tuple(sample.shape)}"
        )
    if not 0 <= timestep < schedule.num_train_timesteps:
        raise ValueError(f"Timestep {timestep} outside [0, {schedule.num_train_timesteps})")
    return schedule.alpha_t[timestep].item(), schedule.sigma_t[timestep].item()


def to_denoised(
    schedule: NoiseSchedule,
    model_output: torch.Tensor,
    timestep: int,
    sample: torch.Tensor,
    prediction_type: Union[str, PredictionType] = PredictionType.EPSILON,
) -> torch.Tensor:
    """
    Estimate of the denoised sample ``x0`` from a model output.

    Args:
        schedule: Noise schedule providing ``alpha_t`` and ``sigma_t``
        model_output: Model output in ``prediction_type`` form
        timestep: Training timestep the output belongs to
        sample: Noisy sample ``x_t`` the model was evaluated on
        prediction_type: Parameterization of ``model_output``

    Returns:
        Denoised-sample estimate
    """
    alpha_t, sigma_t = _coefficients(schedule, timestep, model_output, sample)
    prediction_type = PredictionType(prediction_type)

    if prediction_type == PredictionType.EPSILON:
        return (sample - model_output * sigma_t) / alpha_t
    if prediction_type == PredictionType.SAMPLE:
        return model_output.clone()
    return sample * alpha_t - model_output * sigma_t


def to_epsilon(
    schedule: NoiseSchedule,
    model_output: torch.Tensor,
    timestep: int,
    sample: torch.Tensor,
    prediction_type: Union[str, PredictionType] = PredictionType.EPSILON,
) -> torch.Tensor:
    """Noise residual ``eps`` equivalent to a model output."""
    alpha_t, sigma_t = _coefficients(schedule, timestep, model_output, sample)
    prediction_type = PredictionType(prediction_type)

    if prediction_type == PredictionType.EPSILON:
        return model_output
    if prediction_type == PredictionType.SAMPLE:
        return (sample - model_output * alpha_t) / sigma_t
    return model_output * alpha_t + sample * sigma_t
