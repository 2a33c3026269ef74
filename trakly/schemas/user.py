from pydantic import EmailStr, Field, field_validator
from typing import List, Literal, Optional
from trakly.schemas.common import CamelModel

Year = Literal["1st", "2nd", "3rd", "4th"]
Branch = Literal["IT", "CSE", "CSE AIML", "CSD", "EEE", "ECE", "ME"]

class Subject(CamelModel):
    subject_code: str = Field(..., min_length=1, max_length=20)
    subject_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("subject_code", "subject_name", mode="before")
    @classmethod
    def strip(cls, value):
        return value.strip() if isinstance(value, str) else value

class UserCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    college: str = Field(..., min_length=1, max_length=200)
    year: Year
    branch: Branch

    @field_validator("name", "college", mode="before")
    @classmethod
    def strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    college: Optional[str] = Field(None, min_length=1, max_length=200)
    year: Optional[Year] = None
    branch: Optional[Branch] = None

class UserResponse(CamelModel):
    id: int
    name: str
    email: EmailStr
    college: Optional[str] = None
    year: Optional[str] = None
    branch: Optional[str] = None
    subjects: List[Subject] = []

class AuthSession(CamelModel):
    """What login, signup and refresh hand back to the client."""
    token: str
    user: UserResponse

class SubjectListResponse(CamelModel):
    subjects: List[Subject]
