"""Generators for listings, buyers and offer terms."""

from dataclasses import dataclass
from decimal import Decimal

from estate_deals.generators.base import BaseGenerator
from estate_deals.models.base import Address
from estate_deals.models.enums import AreaUnit
from estate_deals.models.offer import BuyerRef

CITIES = {
    "Lahore": ["DHA Phase 5", "Bahria Town", "Gulberg III", "Johar Town", "Model Town"],
    "Karachi": ["Clifton", "DHA Phase 8", "Gulshan-e-Iqbal", "PECHS"],
    "Islamabad": ["F-7", "E-11", "G-13", "Bahria Enclave"],
}

# Typical plot sizes and price per unit (PKR) by area unit
PLOT_SIZES = {
    AreaUnit.MARLA: ([5, 7, 10], (1_500_000, 3_500_000)),
    AreaUnit.KANAL: ([1, 2], (25_000_000, 60_000_000)),
}


@dataclass
class Listing:
    """Generated attributes of a property about to be listed."""

    address: Address
    area: Decimal
    area_unit: AreaUnit
    asking_price: Decimal
    owner_name: str


@dataclass
class OfferTerms:
    offer_amount: Decimal
    token_amount: Decimal


class AddressGenerator(BaseGenerator):
    """Generate addresses in housing societies of major cities."""

    def generate(self) -> Address:
        city = self.random.choice(list(CITIES))
        return Address(
            line1=f"House {self.random.randint(1, 999)}, Street {self.random.randint(1, 40)}",
            area=self.random.choice(CITIES[city]),
            city=city,
            postal_code=self.fake.numerify("#####"),
        )


class ListingGenerator(BaseGenerator):
    """Generate properties ready to be registered and listed."""

    def __init__(self, seed: int | None = None, locale: str = "en_US") -> None:
        super().__init__(seed, locale)
        self._addresses = AddressGenerator(seed=seed, locale=locale)

    def generate(self) -> Listing:
        """Generate a listing.

        Returns
        -------
        Listing
            Address, plot size and an asking price rounded to 100,000.
        """
        unit = self.random.choice(list(PLOT_SIZES))
        sizes, (low, high) = PLOT_SIZES[unit]
        size = self.random.choice(sizes)
        price = size * self.random.randint(low, high)
        return Listing(
            address=self._addresses.generate(),
            area=Decimal(size),
            area_unit=unit,
            asking_price=Decimal(round(price, -5)),
            owner_name=self.fake.name(),
        )


class BuyerGenerator(BaseGenerator):
    """Generate buyers and their offer terms."""

    def generate(self, requirement_id: str | None = None) -> BuyerRef:
        return BuyerRef(name=self.fake.name(), requirement_id=requirement_id, contact_id=self.fake.uuid4())

    def offer_terms(self, asking_price: Decimal, token_rate: float = 0.10) -> OfferTerms:
        """Offer between 90% and 100% of asking, rounded to 10,000."""
        amount = Decimal(round(float(asking_price) * self.random.uniform(0.90, 1.0), -4))
        token = Decimal(round(float(amount) * token_rate, -3))
        return OfferTerms(offer_amount=amount, token_amount=min(max(token, Decimal(1000)), amount))
