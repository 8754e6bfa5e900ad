from .catalog import MACHINES, PROFILES, MachineDefinition, SimulationProfile, TankDefinition
from .errors import DeliveryFailure, InvalidState, NotFound, SimulationError
from .simulation import EngineConfig, RecurringTick, SimulationEngine, StartResult
