from enum import Enum


class RoleEnum(str, Enum):
    admin = "admin"
    manager = "manager"
    staff = "staff"
    parent = "parent"
