from .storage_entry import StorageEntry
from .room import Room
from .student import Student
from .maintenance_request import MaintenanceRequest
from .complaint import Complaint
from .menu import MenuItem, WeeklyMenu
from .food_request import FoodRequest
from .announcement import Announcement
from .activity import Activity
from .payment import Payment



__all__ = ["StorageEntry", "Room", "Student", "MaintenanceRequest", "Complaint", "MenuItem", "WeeklyMenu", "FoodRequest", "Announcement", "Activity", "Payment"]
