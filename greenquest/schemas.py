"""
Document and request schemas for GreenQuest

Each Firestore collection has one model describing its documents. Request
bodies get their own models so validation happens before anything is written.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator, model_validator

ActivityCategory = Literal['transportation', 'water', 'food', 'energy', 'waste', 'shopping']
ListingCondition = Literal['Like New', 'Good', 'Fair', 'Poor']
ListingStatus = Literal['active', 'sold', 'reserved']


class Document(BaseModel):
    """Base for models loaded from Firestore snapshots"""
    model_config = ConfigDict(extra='ignore')

    id: str

    @classmethod
    def from_snapshot(cls, snapshot):
        return cls.model_validate({**(snapshot.to_dict() or {}), 'id': snapshot.id})

    def to_public(self):
        return self.model_dump()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserProfile(Document):
    display_name: str = 'EcoWarrior'
    email: Optional[str] = None
    school: str = ''
    points: int = Field(0, ge=0)
    level: int = Field(1, ge=1)
    carbon_saved: float = 0.0
    photo_url: str = ''
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra='forbid')

    display_name: Optional[str] = Field(None, min_length=1, max_length=60)
    school: Optional[str] = Field(None, max_length=120)
    photo_url: Optional[HttpUrl] = None


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    display_name: str = Field('EcoWarrior', min_length=1, max_length=60)
    school: str = Field('', max_length=120)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        # Normalize email casing to prevent duplicate vs not-found issues
        return value.strip().lower()


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower()


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

class WaterActivity(BaseModel):
    shower_length: int = Field(..., ge=0, le=120, description="Shower length in minutes")
    water_bottle: bool = False
    water_off: bool = False


class EnergyActivity(BaseModel):
    lights_off: bool = False
    natural_light: bool = False
    unplug_electronics: bool = False
    use_fan: bool = False


class WasteActivity(BaseModel):
    recycled: bool = False
    composted: bool = False
    reusable_container: bool = False
    refused_items: bool = False


CHOICE_CATEGORIES = {
    'transportation': ('bus', 'bike', 'carpool', 'car'),
    'food': ('vegan', 'vegetarian', 'local', 'standard'),
    'shopping': ('secondhand', 'eco-friendly', 'local-business', 'no-purchase'),
}

CHECKLIST_CATEGORIES = {
    'water': WaterActivity,
    'energy': EnergyActivity,
    'waste': WasteActivity,
}


class ActivityLogRequest(BaseModel):
    """
    A logged activity. `value` is a single choice for transportation, food and
    shopping, and a checklist object for water, energy and waste.
    """
    category: ActivityCategory
    value: Union[str, Dict[str, Union[bool, int]]]

    @model_validator(mode='after')
    def check_value_for_category(self):
        if self.category in CHOICE_CATEGORIES:
            choices = CHOICE_CATEGORIES[self.category]
            if not isinstance(self.value, str) or self.value not in choices:
                raise ValueError(f"{self.category} value must be one of: {', '.join(choices)}")
        else:
            if not isinstance(self.value, dict):
                raise ValueError(f"{self.category} value must be an object")
            # checklist keys must match the category model exactly
            model = CHECKLIST_CATEGORIES[self.category]
            unknown = set(self.value) - set(model.model_fields)
            if unknown:
                raise ValueError(f"Unknown {self.category} fields: {', '.join(sorted(unknown))}")
            self.value = model.model_validate(self.value).model_dump()
        return self


class ActivityEntry(Document):
    user_id: str
    category: ActivityCategory
    value: Union[str, Dict[str, Union[bool, int]]]
    points: int = Field(0, ge=0)
    carbon_saved: float = 0.0
    timestamp: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

class PostCreate(BaseModel):
    content: str = Field('', max_length=2000)
    image_url: Optional[HttpUrl] = None

    @model_validator(mode='after')
    def require_text_or_image(self):
        if not self.content.strip() and not self.image_url:
            raise ValueError("Cannot submit empty post: add some text or an image")
        return self


class Post(Document):
    user_id: str
    user_name: str = 'Anonymous'
    user_avatar: str = ''
    content: str = ''
    image_url: Optional[str] = None
    school: str = ''
    likes: int = 0
    comments: int = 0
    timestamp: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Marketplace
# ---------------------------------------------------------------------------

class ListingCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=100)
    price: float = Field(..., ge=0)
    condition: ListingCondition
    description: str = Field(..., min_length=10, max_length=2000)
    meetup_location: str = Field('School Cafeteria', min_length=3, max_length=120)
    image_url: Optional[HttpUrl] = None


class ListingUpdate(BaseModel):
    model_config = ConfigDict(extra='forbid')

    title: Optional[str] = Field(None, min_length=5, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    condition: Optional[ListingCondition] = None
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    meetup_location: Optional[str] = Field(None, min_length=3, max_length=120)
    image_url: Optional[HttpUrl] = None  # explicit null clears the photo
    status: Optional[ListingStatus] = None


class Listing(Document):
    title: str
    price: float = Field(0, ge=0)
    condition: Optional[ListingCondition] = None
    description: str = ''
    meetup_location: str = ''
    image_url: Optional[str] = None
    seller_id: str
    seller_name: str = 'Anonymous'
    seller_avatar: str = ''
    school: str = ''
    status: ListingStatus = 'active'
    likes: int = 0
    timestamp: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------

class Chat(Document):
    listing_id: str
    participants: List[str] = Field(..., min_length=2, max_length=2)
    last_message: str = ''
    last_message_time: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ChatMessage(Document):
    sender_id: str
    message: str
    timestamp: Optional[datetime] = None


class MessageCreate(BaseModel):
    message: str = Field(..., max_length=1000)

    @field_validator('message')
    @classmethod
    def strip_message(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Message cannot be empty")
        return value
