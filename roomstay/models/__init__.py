# Models package
from .room import Room
from .room_date_cell import RoomDateCell
from .reservation import Reservation, ReservationStatus, OCCUPYING_STATUSES, SETTLED_STATUSES
from .block_period import BlockPeriod, BlockPeriodRoom, CellBlockClaim
from .availability_rule import AvailabilityRule, RuleType, RULE_TYPE_LABELS

__all__ = [
    "Room", "RoomDateCell",
    "Reservation", "ReservationStatus", "OCCUPYING_STATUSES", "SETTLED_STATUSES",
    "BlockPeriod", "BlockPeriodRoom", "CellBlockClaim",
    "AvailabilityRule", "RuleType", "RULE_TYPE_LABELS",
]
