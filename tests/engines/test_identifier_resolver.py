"""
Tests for the Identifier Resolver (sales_engines.resolver).

Covers:
- Code normalization and site-code formatting
- Strategy order: canonical hint, surrogate id, normalized code,
  display name, positional (hint-checked)
- NOT_FOUND rather than a guess
- Fresh catalog load on every call
"""

from decimal import Decimal

import pytest

from sales_engines.resolver import (
    NOT_FOUND,
    IdentifierResolver,
    MatchStrategy,
    ResolutionHints,
    format_site_code,
    normalize_code,
    resolve_in,
)
from sales_kernel.domain.parties import EntityKind, Party, PartyKind, Product, Site
from sales_kernel.exceptions import NotFoundError


@pytest.fixture
def resolver(memory_repository) -> IdentifierResolver:
    repo = memory_repository
    repo.add_site(Site(id="10", code="002", display_name="Bodega Principal"))
    repo.add_site(Site(id="11", code="BOD-N", display_name="Bodega Norte"))
    repo.add_site(Site(id="12", code="7", display_name="Bodega Sur"))
    repo.add_party(Party(
        id="1", kind=PartyKind.CLIENT, legacy_code="900123456", display_name="Acme"
    ))
    repo.add_party(Party(
        id="2", kind=PartyKind.CLIENT, legacy_code="800987654", display_name="Globex"
    ))
    repo.add_party(Party(
        id="3", kind=PartyKind.VENDOR, legacy_code="V_ANA", display_name="Ana"
    ))
    repo.add_product(Product(id="20", code="P-100", display_name="Widget", last_cost=Decimal("5")))
    return IdentifierResolver(repo, code_width=3)


class TestNormalization:

    @pytest.mark.parametrize("raw", ["2", "02", "002", " 2 "])
    def test_numeric_codes_padded(self, raw):
        assert normalize_code(raw) == "002"

    def test_text_codes_lowercased_without_separators(self):
        assert normalize_code("BOD-N") == normalize_code("bod_n") == "bodn"

    def test_format_site_code(self):
        assert format_site_code("2") == "002"
        assert format_site_code("0002") == "002"
        assert format_site_code("BOD-N") == "BOD-N"
        assert format_site_code("12", width=5) == "00012"


class TestStrategies:

    def test_site_code_two_resolves_to_002(self, resolver):
        result = resolver.resolve(EntityKind.SITE, "2")
        assert result.entity.id == "10"
        assert result.strategy is MatchStrategy.NORMALIZED_CODE

    def test_surrogate_id_wins_over_code(self, resolver):
        result = resolver.resolve(EntityKind.SITE, "12")
        assert result.entity.code == "7"
        assert result.strategy is MatchStrategy.SURROGATE_ID

    def test_canonical_hint_first(self, resolver):
        result = resolver.resolve(
            EntityKind.SITE, "11", ResolutionHints(canonical_code="002")
        )
        assert result.entity.id == "10"
        assert result.strategy is MatchStrategy.CANONICAL_CODE

    def test_client_by_tax_code(self, resolver):
        party = resolver.require(EntityKind.CLIENT, "900123456")
        assert party.id == "1"

    def test_kind_filters_parties(self, resolver):
        assert not resolver.resolve(EntityKind.CLIENT, "V_ANA").found
        assert resolver.require(EntityKind.VENDOR, "v-ana").id == "3"

    def test_display_name_case_insensitive(self, resolver):
        result = resolver.resolve(EntityKind.SITE, "  bodega NORTE ")
        assert result.entity.id == "11"
        assert result.strategy is MatchStrategy.DISPLAY_NAME

    def test_positional_requires_matching_hint(self, resolver):
        result = resolver.resolve(EntityKind.SITE, "3", ResolutionHints(canonical_code="07"))
        assert result.entity.id == "12"
        assert result.strategy is MatchStrategy.POSITIONAL

    def test_positional_without_matching_code_is_not_found(self, resolver):
        assert resolver.resolve(EntityKind.SITE, "3") is NOT_FOUND

    def test_products_resolve_through_catalog(self, resolver):
        assert resolver.require(EntityKind.PRODUCT, "p100").id == "20"


class TestStoredCodes:

    def test_stored_code_wins_over_colliding_id(self, resolver, memory_repository):
        memory_repository.add_party(Party(
            id="6", kind=PartyKind.CLIENT, legacy_code="1", display_name="Beta"
        ))

        result = resolver.resolve_code(EntityKind.CLIENT, "1")

        assert result.entity.id == "6"
        assert result.strategy is MatchStrategy.CANONICAL_CODE
        assert resolver.resolve(EntityKind.CLIENT, "1").entity.id == "1"

    def test_stored_code_falls_back_to_chain(self, resolver):
        assert resolver.require_code(EntityKind.CLIENT, "2").id == "2"
        assert resolver.require_code(EntityKind.VENDOR, "v-ana").id == "3"

    def test_require_code_raises(self, resolver):
        with pytest.raises(NotFoundError) as exc_info:
            resolver.require_code(EntityKind.CLIENT, "does-not-exist")
        assert exc_info.value.identifier == "does-not-exist"


class TestNotFound:

    def test_unknown_identifier(self, resolver):
        result = resolver.resolve(EntityKind.CLIENT, "does-not-exist")
        assert result is NOT_FOUND
        assert not result.found

    @pytest.mark.parametrize("candidate", [None, "", "   "])
    def test_empty_identifier(self, resolver, candidate):
        assert resolver.resolve(EntityKind.SITE, candidate) is NOT_FOUND

    def test_require_raises(self, resolver):
        with pytest.raises(NotFoundError) as exc_info:
            resolver.require(EntityKind.SITE, "999")
        assert exc_info.value.kind == "site"
        assert exc_info.value.identifier == "999"

    def test_resolve_in_empty_list(self):
        assert resolve_in([], "2") is NOT_FOUND


class TestSiteCode:

    def test_renders_zero_padded(self, resolver):
        assert resolver.site_code("12") == "007"

    def test_text_code_kept(self, resolver):
        assert resolver.site_code("11") == "BOD-N"

    def test_unknown_site_raises(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.site_code("nowhere")


class TestFreshReads:

    def test_catalog_loaded_every_call(self, resolver, memory_repository):
        before = memory_repository.catalog_loads
        resolver.resolve(EntityKind.SITE, "2")
        resolver.resolve(EntityKind.SITE, "2")
        assert memory_repository.catalog_loads == before + 2

    def test_new_entity_visible_immediately(self, resolver, memory_repository):
        assert not resolver.resolve(EntityKind.SITE, "BOD-S").found
        memory_repository.add_site(Site(id="13", code="BOD-S", display_name="Sur 2"))
        assert resolver.require(EntityKind.SITE, "BOD-S").id == "13"
