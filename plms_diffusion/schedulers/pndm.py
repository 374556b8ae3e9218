# plms_diffusion/schedulers/pndm.py
"""
Pseudo linear multistep (PLMS) scheduler.

Implements the PLMS sampler of "Pseudo Numerical Methods for Diffusion
Models on Manifolds" (Liu et al., ICLR 2022), skipping the pseudo
Runge-Kutta warmup. Noise residuals of previous steps are combined with
Adams-Bashforth coefficients of increasing order as the history fills up,
and the combined residual is plugged into the closed-form transfer
function (formula 9) to move from one timestep to the previous one.

The first two calls are special. The first one only has a single residual,
so it takes a plain step and keeps the input sample. The second call is
evaluated at the result of that step: its residual is averaged with the
first one and the step from the first timestep is redone from the kept
sample. This is why the schedule repeats one timestep.
"""

import math
from typing import Dict, Optional, Tuple, Union

import structlog
import torch

from ..core.registry import register_component
from .base import Scheduler
from .prediction import PredictionType, to_denoised, to_epsilon
from .schedule import BetaSchedule, build_schedule
from .state import PLMSState
from .tensor_ops import weighted_sum

logger = structlog.get_logger()

# Adams-Bashforth coefficients by history depth, newest residual first
PLMS_COEFFICIENTS = {
    2: (3 / 2, -1 / 2),
    3: (23 / 12, -16 / 12, 5 / 12),
    4: (55 / 24, -59 / 24, 37 / 24, -9 / 24),
}


@register_component("PNDMScheduler", Scheduler)
class PNDMScheduler(Scheduler):
    """
    Scheduler using the pseudo linear multistep (PLMS) method.

    One instance serves one sampling run at a time; call ``reset`` (or
    ``set_timesteps``) before starting another, or pass an explicit
    ``PLMSState`` to ``step`` to run several trajectories side by side.
    """

    def __init__(
        self,
        num_inference_steps: int = 50,
        num_train_timesteps: int = 1000,
        beta_schedule: Union[str, BetaSchedule] = BetaSchedule.SCALED_LINEAR,
        beta_start: float = 0.00085,
        beta_end: float = 0.012,
        prediction_type: Union[str, PredictionType] = PredictionType.EPSILON,
        steps_offset: int = 1,
    ):
        """
        Create a scheduler ready for its first step.

        Args:
            num_inference_steps: Number of inference steps to schedule
            num_train_timesteps: Number of training diffusion steps
            beta_schedule: Method to schedule betas from beta_start to beta_end
            beta_start: The starting value of beta
            beta_end: The end value of beta
            prediction_type: What the model predicts ("epsilon", "sample", "v_prediction")
            steps_offset: Offset added to every inference timestep
        """
        try:
            prediction_type = PredictionType(prediction_type)
        except ValueError:
            raise ValueError(f"Unsupported prediction type: {prediction_type}") from None

        schedule = build_schedule(
            num_inference_steps=num_inference_steps,
            num_train_timesteps=num_train_timesteps,
            beta_schedule=beta_schedule,
            beta_start=beta_start,
            beta_end=beta_end,
            steps_offset=steps_offset,
        )

        super().__init__({
            "num_inference_steps": num_inference_steps,
            "num_train_timesteps": num_train_timesteps,
            "beta_schedule": BetaSchedule(beta_schedule).value,
            "beta_start": beta_start,
            "beta_end": beta_end,
            "prediction_type": prediction_type.value,
            "steps_offset": steps_offset,
        })
        self.logger = logger.bind(component="PNDMScheduler")
        self.prediction_type = prediction_type
        self.schedule = schedule
        self.state = PLMSState()

        self.logger.info(
            "Initialized PNDM scheduler",
            num_inference_steps=num_inference_steps,
            num_train_timesteps=num_train_timesteps,
            beta_schedule=self.config["beta_schedule"],
            prediction_type=prediction_type.value,
        )

    @classmethod
    def from_config(cls, config) -> "PNDMScheduler":
        """
        Create a scheduler from a config dict or ``PNDMSchedulerConfig``.

        Raises:
            ValueError: If the configuration does not validate
        """
        from ..configs.scheduler import PNDMSchedulerConfig

        if not isinstance(config, PNDMSchedulerConfig):
            config = PNDMSchedulerConfig.from_dict(config or {})

        issues = config.validate()
        if issues:
            raise ValueError("Invalid PNDM scheduler config: " + "; ".join(issues))

        return cls(**config.to_dict())

    @property
    def alpha_t(self) -> torch.Tensor:
        return self.schedule.alpha_t

    @property
    def sigma_t(self) -> torch.Tensor:
        return self.schedule.sigma_t

    @property
    def lambda_t(self) -> torch.Tensor:
        return self.schedule.lambda_t

    @property
    def model_outputs(self) -> Tuple[torch.Tensor, ...]:
        """Denoised-sample estimates of every step of the current run."""
        return tuple(self.state.model_outputs)

    @property
    def counter(self) -> int:
        return self.state.counter

    def create_state(self) -> PLMSState:
        """Fresh state for an independent sampling run."""
        return PLMSState()

    def reset(self):
        """Forget the current run so the next ``step`` starts a new one."""
        self.state = self.create_state()

    def set_timesteps(self, num_inference_steps: int):
        """
        Reschedule for a different number of inference steps.

        The beta schedule is kept, the timesteps are rebuilt and the
        sampling state is reset.

        Args:
            num_inference_steps: Number of steps for inference
        """
        self.schedule = build_schedule(
            num_inference_steps=num_inference_steps,
            num_train_timesteps=self.config["num_train_timesteps"],
            beta_schedule=self.config["beta_schedule"],
            beta_start=self.config["beta_start"],
            beta_end=self.config["beta_end"],
            steps_offset=self.config["steps_offset"],
        )
        self.config["num_inference_steps"] = num_inference_steps
        self.reset()

        self.logger.info(
            "Setting timesteps",
            num_inference_steps=num_inference_steps,
            timesteps_range=[self.schedule.timesteps[0], self.schedule.timesteps[-1]],
        )

    def step(
        self,
        model_output: torch.Tensor,
        timestep: int,
        sample: torch.Tensor,
        return_dict: bool = False,
        state: Optional[PLMSState] = None,
    ) -> Union[torch.Tensor, Dict[str, torch.Tensor]]:
        """
        Compute the sample at the previous timestep and advance the state.

        Must be called once per entry of ``timesteps`` (or of
        ``calculate_timesteps``), in order. Calls out of order corrupt the
        residual history without any error being raised.

        Args:
            model_output: Model prediction at ``timestep``
            timestep: The current time step in the diffusion chain
            sample: The current input sample to the model
            return_dict: Return ``{"prev_sample", "pred_original_sample"}``
            state: Sampling state to advance, defaults to the scheduler's own

        Returns:
            Predicted sample at the previous time step
        """
        if state is None:
            state = self.state
        timestep = int(timestep)

        residual = to_epsilon(self.schedule, model_output, timestep, sample, self.prediction_type)

        step_delta = self.num_train_timesteps // self.num_inference_steps
        prev_timestep = timestep - step_delta

        if state.counter != 1:
            state.history.append(residual.clone())
        else:
            # Redo the first transition from the sample kept on the first call
            prev_timestep = timestep
            timestep = timestep + step_delta

        depth = len(state.history)
        if depth == 1 and state.counter == 0:
            eff_residual = residual
            state.cached_sample = sample.clone()
        elif depth == 1 and state.counter == 1:
            eff_residual = weighted_sum([1 / 2, 1 / 2], [residual, state.history.back(1)])
            sample = state.cached_sample
            state.cached_sample = None
        else:
            order = min(depth, 4)
            eff_residual = weighted_sum(PLMS_COEFFICIENTS[order], state.history.latest(order))

        pred_original_sample = to_denoised(self.schedule, eff_residual, timestep, sample)
        state.model_outputs.append(pred_original_sample)

        prev_sample = self._get_prev_sample(sample, timestep, prev_timestep, eff_residual)

        self.logger.debug(
            "PLMS step",
            counter=state.counter,
            history_depth=depth,
            timestep=timestep,
            prev_timestep=prev_timestep,
        )
        state.counter += 1

        if return_dict:
            return {"prev_sample": prev_sample, "pred_original_sample": pred_original_sample}
        return prev_sample

    def _get_prev_sample(
        self,
        sample: torch.Tensor,
        timestep: int,
        prev_timestep: int,
        residual: torch.Tensor,
    ) -> torch.Tensor:
        """
        Compute ``x_(t-d)`` from ``x_t`` with formula (9) of the PNDM paper.

        Notation:
            alpha_prod_t       alpha_t
            alpha_prod_prev    alpha_(t-d)
            beta_prod_t        1 - alpha_t
            beta_prod_prev     1 - alpha_(t-d)

        Args:
            sample: The current input to the model x_t
            timestep: The current time step t
            prev_timestep: The previous time step t-d, clamped to 0
            residual: Noise residual e_theta(x_t, t)

        Returns:
            Previous sample x_(t-d)
        """
        alpha_prod_t = self.schedule.alpha_prod(timestep)
        alpha_prod_prev = self.schedule.alpha_prod(prev_timestep)
        beta_prod_t = 1 - alpha_prod_t
        beta_prod_prev = 1 - alpha_prod_prev

        # (alpha_(t-d) - alpha_t) / (sqrt(alpha_t) * (sqrt(alpha_(t-d)) + sqrt(alpha_t))) + 1
        # simplifies to sqrt(alpha_(t-d) / alpha_t)
        sample_coeff = math.sqrt(alpha_prod_prev / alpha_prod_t)

        # Denominator of e_theta(x_t, t) in formula (9)
        model_output_denom_coeff = alpha_prod_t * math.sqrt(beta_prod_prev) + math.sqrt(
            alpha_prod_t * beta_prod_t * alpha_prod_prev
        )

        model_coeff = -(alpha_prod_prev - alpha_prod_t) / model_output_denom_coeff
        return weighted_sum([sample_coeff, model_coeff], [sample, residual])
