from app.models.author import Author
from app.models.message import Message
from app.models.room import Room, RoomMember

__all__ = ["Author", "Room", "RoomMember", "Message"]
