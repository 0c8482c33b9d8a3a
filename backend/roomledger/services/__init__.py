# Business Services
from roomledger.services.room_service import RoomService
from roomledger.services.availability_service import AvailabilityService
from roomledger.services.reservation_service import ReservationService
from roomledger.services.checkin_service import CheckInService
from roomledger.services.conversion_service import ConversionService

__all__ = [
    'RoomService', 'AvailabilityService', 'ReservationService',
    'CheckInService', 'ConversionService'
]
