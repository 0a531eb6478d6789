from pydantic import BaseModel, ConfigDict
from typing import Dict, List, Optional

class ResolvedLink(BaseModel):
    url: str
    store_name: str
    item_name: str

class StoreCartItem(BaseModel):
    item_id: str
    name: str
    quantity: int
    unit: Optional[str] = None
    price_estimate: Optional[float] = None
    url: str

class StoreCart(BaseModel):
    store_id: str
    store_name: str
    logo_url: Optional[str] = None
    cart_strategy: str
    items: List[StoreCartItem]
    total_estimate: Optional[float] = None
    items_with_price: int
    items_without_price: int

class StoreCartsOut(BaseModel):
    store_carts: List[StoreCart]
    total_items: Optional[int] = None
    school_id: Optional[str] = None
    message: Optional[str] = None

class StoreRecommendation(BaseModel):
    store_id: str
    store_name: str
    score: int
    reason: str
    cart_clicks: int
    item_clicks: int

class PartnerStoreOut(BaseModel):
    id: str
    name: str
    logo_url: Optional[str] = None
    order_index: int

    model_config = ConfigDict(from_attributes=True)

class ClickEventIn(BaseModel):
    store_id: Optional[str] = None
    item_id: Optional[str] = None
    school_id: Optional[str] = None
    list_id: Optional[str] = None
    session_id: Optional[str] = None

class GeocodeRequest(BaseModel):
    cep: Optional[str] = None

class GeocodeResult(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    cached: bool
    cep: str

class CepSuggestion(BaseModel):
    cep: str
    formatted_cep: str
    city: Optional[str] = None
    state: Optional[str] = None
    school_count: int
    search_count: int

class SchoolOut(BaseModel):
    id: str
    name: str
    slug: str
    cep: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    logo_url: Optional[str] = None
    network_type: Optional[str] = None
    education_types: Optional[List[str]] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_km: Optional[float] = None
    proximity_rank: Optional[int] = None
    proximity_label: Optional[str] = None

class UserLocation(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None

class SchoolSearchOut(BaseModel):
    schools: List[SchoolOut]
    total: int
    search_mode: str
    user_location: Optional[UserLocation] = None

class CacheRefreshRequest(BaseModel):
    schools: bool = True
    lists: bool = True

class CacheRefreshOut(BaseModel):
    success: bool
    duration_ms: int
    results: Dict[str, str]
    timestamp: str
