# fleet/catalog.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal

OperatingMode = Literal["continuous", "on-demand", "batch"]


@dataclass(frozen=True)
class TankDefinition:
    capacity_liters: float
    product: str
    is_gas: bool = False


@dataclass(frozen=True)
class MachineDefinition:
    id: str
    name: str
    location: str
    default_profile: str
    # insertion order is the tick order
    tank_configuration: Dict[str, TankDefinition] = field(default_factory=dict)


@dataclass(frozen=True)
class SimulationProfile:
    name: str
    description: str
    default_interval_ms: int
    operating_mode: OperatingMode


PROFILES: Dict[str, SimulationProfile] = {
    "RO_WATER": SimulationProfile(
        name="RO Water Purification System",
        description="Multi-stage water treatment with 3 tanks",
        default_interval_ms=5000,
        operating_mode="continuous",
    ),
    "MILK_MACHINE": SimulationProfile(
        name="Refrigerated Milk Dispensing System",
        description="4-tank milk storage and dispensing",
        default_interval_ms=7000,
        operating_mode="continuous",
    ),
    "JUICE_SODA_MACHINE": SimulationProfile(
        name="Carbonated Beverage Dispenser",
        description="5-tank fountain drink system",
        default_interval_ms=4000,
        operating_mode="on-demand",
    ),
    "DIESEL_DISPENSER": SimulationProfile(
        name="Industrial Fuel Dispenser",
        description="3-tank diesel storage and distribution",
        default_interval_ms=8000,
        operating_mode="batch",
    ),
}


MACHINES: Dict[str, MachineDefinition] = {
    "machine_001": MachineDefinition(
        id="machine_001",
        name="RO Water Dispenser - Building A",
        location="Factory Floor 1",
        default_profile="RO_WATER",
        tank_configuration={
            "raw_water_tank": TankDefinition(5000, "Raw Water"),
            "filtered_water_tank": TankDefinition(3000, "Filtered Water"),
            "ro_water_tank": TankDefinition(2000, "RO Purified Water"),
        },
    ),
    "machine_002": MachineDefinition(
        id="machine_002",
        name="Milk Cooler - Cafeteria",
        location="Building B - Level 2",
        default_profile="MILK_MACHINE",
        tank_configuration={
            "whole_milk_tank": TankDefinition(500, "Whole Milk"),
            "skim_milk_tank": TankDefinition(500, "Skim Milk"),
            "chocolate_milk_tank": TankDefinition(300, "Chocolate Milk"),
            "cream_tank": TankDefinition(200, "Fresh Cream"),
        },
    ),
    "machine_003": MachineDefinition(
        id="machine_003",
        name="Juice Dispenser - Lobby",
        location="Main Entrance",
        default_profile="JUICE_SODA_MACHINE",
        tank_configuration={
            "cola_syrup_tank": TankDefinition(100, "Cola Syrup"),
            "orange_syrup_tank": TankDefinition(100, "Orange Syrup"),
            "lemon_syrup_tank": TankDefinition(100, "Lemon Syrup"),
            "water_tank": TankDefinition(500, "Carbonated Water"),
            "co2_tank": TankDefinition(50, "CO2 Gas", is_gas=True),
        },
    ),
    "machine_004": MachineDefinition(
        id="machine_004",
        name="Diesel Pump - Warehouse",
        location="Storage Area 3",
        default_profile="DIESEL_DISPENSER",
        tank_configuration={
            "diesel_storage_tank": TankDefinition(10000, "Diesel Fuel"),
            "additive_tank": TankDefinition(500, "Diesel Additive"),
            "waste_tank": TankDefinition(200, "Waste/Spillage"),
        },
    ),
}
