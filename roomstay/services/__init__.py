# Services package
from .rule_resolver import EffectiveConstraint, resolve, resolve_many, effective_price
from .block_expander import (
    occurrences, expand, expand_dates,
    BlockPeriodService, BlockApplyResult, get_block_period_service
)
from .inventory_service import InventoryService, get_inventory_service
from .rule_service import RuleService, get_rule_service
from .grid_builder import GridBuilder, AvailabilityGrid, GridRoom, GridCell, get_grid_builder
from .conflict_checker import ConflictChecker, AvailabilityResult, get_conflict_checker
from .reservation_writer import ReservationWriter, get_reservation_writer
from .occupancy_service import OccupancyService, OccupancyStats, get_occupancy_service

__all__ = [
    "EffectiveConstraint", "resolve", "resolve_many", "effective_price",
    "occurrences", "expand", "expand_dates",
    "BlockPeriodService", "BlockApplyResult", "get_block_period_service",
    "InventoryService", "get_inventory_service",
    "RuleService", "get_rule_service",
    "GridBuilder", "AvailabilityGrid", "GridRoom", "GridCell", "get_grid_builder",
    "ConflictChecker", "AvailabilityResult", "get_conflict_checker",
    "ReservationWriter", "get_reservation_writer",
    "OccupancyService", "OccupancyStats", "get_occupancy_service",
]
