from enum import Enum


class Channel(str, Enum):
    INAPP_CREATOR = "inapp_creator"
    INAPP_EDITOR = "inapp_editor"
    EMAIL_CREATOR = "email_creator"
    EMAIL_EDITOR = "email_editor"
    ORDER_ROOM = "order_room"
