# Ontology Models
from roomledger.models.ontology import Room, Attendant, Reservation, CheckIn

__all__ = ['Room', 'Attendant', 'Reservation', 'CheckIn']
