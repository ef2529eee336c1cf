from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from orderhub.models.shared.enums import TrackingStatus, VehicleType

# === Vehicle info ===

class VehicleInfoBase(BaseModel):
    vehicle_make: str = Field(..., min_length=1, max_length=50)
    vehicle_model: str = Field(..., min_length=1, max_length=50)
    vehicle_year: str
    license_plate: str = Field(..., min_length=1, max_length=20)
    license_number: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=30)
    vehicle_type: Optional[VehicleType] = None

    @field_validator('vehicle_year')
    @classmethod
    def year_four_digits(cls, v):
        if len(v) != 4 or not v.isdigit():
            raise ValueError('Year must be a 4-digit number')
        return v

    @field_validator('license_plate')
    @classmethod
    def normalize_plate(cls, v):
        return v.strip().upper()

class VehicleInfoCreate(VehicleInfoBase):
    user_id: Optional[int] = None

class VehicleInfoUpdate(BaseModel):
    vehicle_make: Optional[str] = Field(None, min_length=1, max_length=50)
    vehicle_model: Optional[str] = Field(None, min_length=1, max_length=50)
    vehicle_year: Optional[str] = None
    license_plate: Optional[str] = Field(None, min_length=1, max_length=20)
    license_number: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=30)
    vehicle_type: Optional[VehicleType] = None

    @field_validator('vehicle_year')
    @classmethod
    def year_four_digits(cls, v):
        if v is not None and (len(v) != 4 or not v.isdigit()):
            raise ValueError('Year must be a 4-digit number')
        return v

    @field_validator('license_plate')
    @classmethod
    def normalize_plate(cls, v):
        return v.strip().upper() if v is not None else v

class VehicleInfoResponse(VehicleInfoBase):
    id: int
    user_id: int

    class Config:
        from_attributes = True

# === Tracking ===

class DriverLocationUpdate(BaseModel):
    driver_id: Optional[int] = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    speed: Optional[float] = Field(None, ge=0)
    heading: Optional[float] = Field(None, ge=0, le=360)

class DeliveryTrackingResponse(BaseModel):
    id: int
    order_id: int
    driver_id: int
    latitude: Decimal
    longitude: Decimal
    speed: Optional[Decimal] = None
    heading: Optional[Decimal] = None
    distance_to_destination: Optional[Decimal] = None
    eta_minutes: Optional[int] = None
    status: TrackingStatus
    timestamp: datetime

    class Config:
        from_attributes = True

class DeliveryAssignmentRequest(BaseModel):
    order_id: int
    driver_id: int
    pickup_latitude: Optional[float] = Field(None, ge=-90, le=90)
    pickup_longitude: Optional[float] = Field(None, ge=-180, le=180)

class DeliveryAssignmentResponse(BaseModel):
    order_id: int
    driver_id: int
    tracking: DeliveryTrackingResponse
    distance_km: Optional[float] = None
    eta_minutes: Optional[int] = None

    class Config:
        from_attributes = True

class AvailableDriverResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    distance_km: Optional[float] = None
    vehicle: Optional[VehicleInfoResponse] = None

class LiveLocation(BaseModel):
    latitude: float
    longitude: float

class DriverDisplay(BaseModel):
    name: str
    vehicle: str
    phone: str

class RouteEstimateResponse(BaseModel):
    distance_km: float
    duration_minutes: int

class LiveTrackingResponse(BaseModel):
    order_id: int
    order_number: str
    current_location: LiveLocation
    driver: DriverDisplay
    status: str
    eta_minutes: int
    distance_remaining_km: float
    last_update: datetime
    route: Optional[RouteEstimateResponse] = None

class DeliveryEstimateResponse(BaseModel):
    order_id: int
    distance_km: Optional[float] = None
    eta_minutes: Optional[int] = None
    status: str

class ActiveDeliveriesResponse(BaseModel):
    driver_id: int
    deliveries: List[DeliveryTrackingResponse]
