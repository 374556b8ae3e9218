# plms_diffusion/__init__.py
# Main package exports
from .core import Registry, ComponentFactory, ConfigManager
from .configs import PNDMSchedulerConfig
from .schedulers import Scheduler, PNDMScheduler, PLMSState, PredictionType, BetaSchedule
from .pipelines import DenoisingLoop

__version__ = "0.1.0"

__all__ = [
    'Registry',
    'ComponentFactory',
    'ConfigManager',
    'PNDMSchedulerConfig',
    'Scheduler',
    'PNDMScheduler',
    'PLMSState',
    'PredictionType',
    'BetaSchedule',
    'DenoisingLoop'
]
