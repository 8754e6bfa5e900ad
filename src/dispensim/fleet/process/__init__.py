from .machine import MachineProcess
from .payload import PayloadAssembler
from .tank import TankProcess, tank_alerts
