# API Routers
from roomledger.routers import rooms, reservations, checkin

__all__ = ['rooms', 'reservations', 'checkin']
