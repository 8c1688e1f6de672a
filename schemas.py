"""
Health Community Database Schemas

Each Pydantic model represents a MongoDB collection. Collection name = lowercase class name.

Models:
- Account: identity, credential, role and activation flags
- Post: forum question with tags, votes and moderation status
- Comment: threaded answer/reply on a post
- Cycle: observed period days and the derived fertile window
- Reminder: dated notification for a customer
- Counselor: provider profile linked to an account
- ConsultationSchedule: bookable counselor slot
- ConsultationBooking: a customer's reservation of a slot
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

Role = Literal["Customer", "Counselor", "Doctor", "Manager", "Admin"]
ROLES = ("Customer", "Counselor", "Doctor", "Manager", "Admin")

ContentStatus = Literal["pending", "approved", "rejected", "flagged"]
ScheduleStatus = Literal["available", "booked", "completed", "cancelled"]
BookingStatus = Literal["pending", "confirmed", "completed", "cancelled"]


class Account(BaseModel):
    name: str
    email: str
    password_hash: str
    role: Role
    image: Optional[str] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    phone: Optional[str] = None
    is_verified: bool = False
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Post(BaseModel):
    title: str
    content: str
    category: str
    account_id: str
    tags: List[str] = []
    is_anonymous: bool = False
    vote_up: List[str] = []
    vote_down: List[str] = []
    view_count: int = Field(0, ge=0)
    answer_count: int = Field(0, ge=0)
    has_expert_answer: bool = False
    status: ContentStatus = "pending"
    edited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Comment(BaseModel):
    post_id: str
    account_id: str
    content: str
    parent_comment_id: Optional[str] = None
    vote_up: List[str] = []
    vote_down: List[str] = []
    status: ContentStatus = "pending"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Cycle(BaseModel):
    customer_id: str
    period_days: List[datetime]
    fertile_window: List[datetime] = []
    ovulation_date: Optional[datetime] = None
    notes: Optional[str] = None
    is_predicted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Reminder(BaseModel):
    customer_id: str
    type: str  # Pill | Ovulation | Event ...
    date: datetime
    message: Optional[str] = None
    is_sent: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Counselor(BaseModel):
    account_id: str
    bio: Optional[str] = None
    specialty: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0, le=80)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConsultationSchedule(BaseModel):
    counselor_id: str
    start_time: datetime
    end_time: datetime
    status: ScheduleStatus = "available"
    note: Optional[str] = None
    price: float = Field(..., ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConsultationBooking(BaseModel):
    customer_id: str
    schedule_id: str
    booking_date: datetime
    status: BookingStatus = "pending"
    note: Optional[str] = None
    result: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
