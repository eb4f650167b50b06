# smartcities/schemas.py
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from smartcities.config import SUBSCRIPTION_MAX_RADIUS_KM


class ReportCategory(str, Enum):
    danger = "danger"
    travaux = "travaux"
    nuisance = "nuisance"
    reparation = "reparation"
    pollution = "pollution"


CATEGORY_ICONS = {
    ReportCategory.danger: "alert-circle-outline",
    ReportCategory.travaux: "construct-outline",
    ReportCategory.nuisance: "volume-high-outline",
    ReportCategory.reparation: "hammer-outline",
    ReportCategory.pollution: "leaf-outline",
}


class VotePolarity(str, Enum):
    up = "up"
    down = "down"


def _not_blank(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.strip():
        raise ValueError("must not be blank")
    return v.strip() if v is not None else v


class ReportIn(BaseModel):
    title: str = Field(..., max_length=200)
    description: str
    user_id: int
    category: ReportCategory
    city: str = Field(..., max_length=120)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    # URLs déjà uploadées (stockage objet hors périmètre)
    photo_urls: List[str] = Field(default_factory=list, max_length=7)

    @field_validator("title", "description", "city")
    @classmethod
    def strip_blank(cls, v):
        return _not_blank(v)


class ReportUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    category: Optional[ReportCategory] = None
    city: Optional[str] = Field(None, max_length=120)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("title", "description", "city")
    @classmethod
    def strip_blank(cls, v):
        return _not_blank(v)

    @model_validator(mode="after")
    def check_coords(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude go together")
        return self


class ReportFilters(BaseModel):
    """Filtres explicites de GET /reports (conjonction)."""
    city: Optional[str] = None
    category: Optional[ReportCategory] = None
    user_id: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_km: Optional[float] = Field(None, ge=0, le=20000)

    @model_validator(mode="after")
    def check_coords(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude go together")
        return self


class VoteIn(BaseModel):
    report_id: int
    user_id: int
    type: VotePolarity
    # position courante du votant (mémorisée sur l'utilisateur)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class CommentIn(BaseModel):
    report_id: int
    user_id: int
    text: str = Field(..., max_length=2000)
    parent_id: Optional[int] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("text")
    @classmethod
    def strip_blank(cls, v):
        return _not_blank(v)


class FlagIn(BaseModel):
    reporter_id: int
    reason: str = Field(..., max_length=1000)

    @field_validator("reason")
    @classmethod
    def strip_blank(cls, v):
        return _not_blank(v)


class SubscriptionIn(BaseModel):
    user_id: int
    city: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_km: Optional[float] = Field(None, gt=0, le=SUBSCRIPTION_MAX_RADIUS_KM)

    @model_validator(mode="after")
    def check_target(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude go together")
        if not self.city and self.latitude is None:
            raise ValueError("city or position required")
        return self


class ResetUserIn(BaseModel):
    user_id: int
