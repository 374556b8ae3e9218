# plms_diffusion/schedulers/__init__.py
from .base import Scheduler
from .schedule import BetaSchedule, NoiseSchedule, build_schedule, linspace
from .tensor_ops import weighted_sum
from .prediction import PredictionType
from .state import PLMSState, ResidualHistory
from .karras import convert_to_karras, convert_to_timesteps
from .pndm import PNDMScheduler  # imported to trigger registration

__all__ = [
    'Scheduler',
    'BetaSchedule',
    'NoiseSchedule',
    'build_schedule',
    'linspace',
    'weighted_sum',
    'PredictionType',
    'PLMSState',
    'ResidualHistory',
    'convert_to_karras',
    'convert_to_timesteps',
    'PNDMScheduler',
]
