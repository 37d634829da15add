"""Sample data generators for brokerage scenarios."""

from estate_deals.generators.base import BaseGenerator
from estate_deals.generators.brokerage import (
    AddressGenerator,
    BuyerGenerator,
    Listing,
    ListingGenerator,
    OfferTerms,
)

__all__ = [
    "AddressGenerator",
    "BaseGenerator",
    "BuyerGenerator",
    "Listing",
    "ListingGenerator",
    "OfferTerms",
]
