from gymbook.models.person import Person
from gymbook.models.session import GymSession, Location, SessionType
from gymbook.models.booking import Booking

__all__ = ["Person", "SessionType", "Location", "GymSession", "Booking"]
