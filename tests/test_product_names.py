"""Unit tests for product display-name formatting."""

import pytest

from aimo_dashboard.normalize.product_names import format_product_name


class TestFormatProductName:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Valio kevytmaito 1 | ESL", "Valio Kevytmaito 1L (ESL)"),
            ("Valio vispikerma 1 | UHT laktoositon", "Valio Vispikerma 1L (UHT, Laktoositon)"),
            (
                "Valio suurtalous kuohukerma 1,75 | laktoositon",
                "Valio Suurtalous Kuohukerma 1,75L (Laktoositon)",
            ),
        ],
    )
    def test_known_examples(self, raw: str, expected: str) -> None:
        assert format_product_name(raw) == expected

    def test_explicit_unit_uppercased(self) -> None:
        assert format_product_name("valio voi 500g") == "Valio Voi 500G"

    def test_decimal_point_rendered_with_comma(self) -> None:
        assert format_product_name("kerma 1.5") == "Kerma 1,5L"

    def test_large_bare_number_gets_no_unit(self) -> None:
        assert format_product_name("tuote 250") == "Tuote 250"

    def test_only_first_size_token_formatted(self) -> None:
        assert format_product_name("maito 1 pack 6") == "Maito 1L Pack 6"

    def test_acronyms_stay_uppercase(self) -> None:
        assert format_product_name("uht maito api sku") == "UHT Maito API SKU"

    def test_attributes_split_on_commas(self) -> None:
        assert format_product_name("maito 1 | esl,laktoositon") == "Maito 1L (ESL, Laktoositon)"

    def test_no_attributes(self) -> None:
        assert format_product_name("VALIO KEVYTMAITO") == "Valio Kevytmaito"

    def test_empty_string_unchanged(self) -> None:
        assert format_product_name("") == ""

    def test_blank_attribute_part_dropped(self) -> None:
        assert format_product_name("maito 1 | ") == "Maito 1L"
