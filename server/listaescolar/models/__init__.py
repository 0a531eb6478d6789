from listaescolar.models.models import (
    CepCoordinate,
    CepSearchEvent,
    MaterialItem,
    MaterialList,
    PartnerStore,
    PopularList,
    PopularSchool,
    School,
    StoreClickEvent,
)

__all__ = [
    "CepCoordinate",
    "CepSearchEvent",
    "MaterialItem",
    "MaterialList",
    "PartnerStore",
    "PopularList",
    "PopularSchool",
    "School",
    "StoreClickEvent",
]
