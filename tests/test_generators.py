"""Tests for sample data generators."""

from decimal import Decimal

from estate_deals.generators import AddressGenerator, BuyerGenerator, ListingGenerator
from estate_deals.generators.brokerage import CITIES, PLOT_SIZES


class TestAddressGenerator:
    """Tests for AddressGenerator."""

    def test_generate_address(self, seed: int) -> None:
        address = AddressGenerator(seed=seed).generate()

        assert address.city in CITIES
        assert address.area in CITIES[address.city]
        assert address.line1.startswith("House ")
        assert len(address.postal_code) == 5
        assert address.country == "PK"

    def test_reproducible(self, seed: int) -> None:
        assert AddressGenerator(seed=seed).generate() == AddressGenerator(seed=seed).generate()


class TestListingGenerator:
    """Tests for ListingGenerator."""

    def test_generate_listing(self, seed: int) -> None:
        gen = ListingGenerator(seed=seed)

        for _ in range(20):
            listing = gen.generate()
            sizes, _ = PLOT_SIZES[listing.area_unit]
            assert int(listing.area) in sizes
            assert listing.asking_price % 100_000 == 0
            assert listing.asking_price > 0
            assert listing.owner_name

    def test_reproducible(self, seed: int) -> None:
        first = ListingGenerator(seed=seed)
        second = ListingGenerator(seed=seed)

        assert [first.generate() for _ in range(5)] == [second.generate() for _ in range(5)]


class TestBuyerGenerator:
    """Tests for BuyerGenerator."""

    def test_generate_external_buyer(self, seed: int) -> None:
        buyer = BuyerGenerator(seed=seed).generate()

        assert buyer.name
        assert buyer.requirement_id is None
        assert buyer.owner_id == buyer.contact_id

    def test_generate_internal_buyer(self, seed: int) -> None:
        buyer = BuyerGenerator(seed=seed).generate("req-001")

        assert buyer.requirement_id == "req-001"

    def test_offer_terms_within_range(self, seed: int) -> None:
        gen = BuyerGenerator(seed=seed)
        asking = Decimal("10000000")

        for _ in range(50):
            terms = gen.offer_terms(asking)
            assert Decimal("9000000") <= terms.offer_amount <= asking
            assert terms.offer_amount % 10_000 == 0
            assert 0 < terms.token_amount <= terms.offer_amount

