from __future__ import annotations

import pytest

from customs_loader.mapping.normalizer import normalize_header, strip_diacritics, tokenize


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Country Code", "country_code"),
        ("  Value (USD) ", "value_usd"),
        ("Peso bruto (kg).", "peso_bruto_kg"),
        ("Descripción de zona geoeconómica (CAN, MERCOSUR, NAFTA, etc.).",
         "descripcion_de_zona_geoeconomica_can_mercosur_nafta_etc"),
        ("codigo__del___pais", "codigo_del_pais"),
        ("GESTIÓN", "gestion"),
        ("Straße", "strasse"),
        (2024, "2024"),
    ],
)
def test_normalize_header(raw, expected):
    assert normalize_header(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "()", "._-"])
def test_normalize_header_empty_inputs_yield_none(raw):
    assert normalize_header(raw) is None


@pytest.mark.parametrize(
    "raw",
    ["Country Code", "Valor FOB (en dólares estadounidenses).", "ÑANDÚ  x", "a__b"],
)
def test_normalize_header_is_idempotent(raw):
    once = normalize_header(raw)
    assert normalize_header(once) == once


def test_strip_diacritics_keeps_base_letters():
    assert strip_diacritics("Código país ñandú") == "Codigo pais nandu"


def test_tokenize_splits_on_separator():
    assert tokenize("codigo_del_pais") == ["codigo", "del", "pais"]
    assert tokenize(None) == []
    assert tokenize("") == []
