from pydantic import BaseModel


class UserResponse(BaseModel):
    id: str
    full_name: str | None
    display_name: str
    role: str | None
    role_label: str
    whatsapp: str | None
    email: str | None
    gallery_name: str | None


class UsersResponse(BaseModel):
    filter: str
    total: int
    users: list[UserResponse]


class RoleUpdateRequest(BaseModel):
    role: str
