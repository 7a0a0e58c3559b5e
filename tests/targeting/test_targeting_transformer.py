import pytest

from adapters.meta.models import GENDER_FEMALE, GENDER_MALE
from core.models.campaign import TargetingOverrides
from core.services.targeting_transformer import (
    TargetingTransformer,
    match_interests,
    parse_age_range,
    parse_countries,
    parse_genders,
)


@pytest.fixture(scope="module")
def transformer() -> TargetingTransformer:
    return TargetingTransformer()


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Adults 25-45", (25, 45)),
        ("ages 30 to 50", (30, 50)),
        ("people aged 35+", (35, 65)),
        ("teens 13-17", (18, 18)),
        ("retirees 60-90", (60, 65)),
        ("50-30 year olds", (30, 50)),
        ("anyone at all", (18, 65)),
    ],
)
def test_parse_age_range(text, expected):
    assert parse_age_range(text) == expected


def test_parse_genders_female_only():
    assert parse_genders("Women who love yoga") == [GENDER_FEMALE]


def test_parse_genders_male_only():
    assert parse_genders("Men aged 30-50") == [GENDER_MALE]


def test_parse_genders_both_or_unspecified():
    assert parse_genders("Men and women") == [GENDER_MALE, GENDER_FEMALE]
    assert parse_genders("Busy professionals") == [GENDER_MALE, GENDER_FEMALE]


def test_parse_countries_ignores_pronoun_us():
    assert parse_countries("Help us reach parents") == []
    assert parse_countries("Parents in the US and Canada") == ["US", "CA"]
    assert parse_countries("Shoppers in the UK") == ["GB"]


def test_match_interests_dedupes_by_id_and_handles_plurals():
    interests = match_interests(["Dogs and more dogs", "fitness and exercise"])
    ids = [i.id for i in interests]

    assert len(ids) == len(set(ids))
    assert {i.name for i in interests} == {"Dogs", "Fitness and wellness"}


def test_transform_sample_audience(transformer):
    spec = transformer.transform(
        "Women aged 25-45 in the United States",
        ["Online shopping takes too long"],
    )

    assert spec.age_min == 25
    assert spec.age_max == 45
    assert spec.genders == [GENDER_FEMALE]
    assert spec.geo_locations.countries == ["US"]
    assert [i.name for i in spec.interests] == ["Shopping"]


def test_transform_falls_back_to_broad_defaults(transformer):
    spec = transformer.transform("", None, default_countries=["US"])

    assert (spec.age_min, spec.age_max) == (18, 65)
    assert spec.genders == [GENDER_MALE, GENDER_FEMALE]
    assert spec.geo_locations.countries == ["US"]
    assert spec.interests == []


def test_transform_without_countries_omits_geo(transformer):
    spec = transformer.transform("Adults 20-30")

    assert spec.geo_locations is None
    assert "geo_locations" not in spec.to_graph()


def test_overrides_replace_parsed_values(transformer):
    spec = transformer.transform(
        "Women aged 25-45 in the US",
        ["cooking"],
        overrides=TargetingOverrides(
            age_min=30,
            genders=["male"],
            interests=["travel", "6003000000001"],
            countries=["ca", "United Kingdom"],
        ),
    )

    assert (spec.age_min, spec.age_max) == (30, 45)
    assert spec.genders == [GENDER_MALE]
    assert [i.id for i in spec.interests] == ["6003430696269", "6003000000001"]
    assert spec.geo_locations.countries == ["CA", "GB"]


def test_interests_are_sent_as_flexible_spec(transformer):
    graph = transformer.transform("Adults", ["travel"]).to_graph()

    assert "interests" not in graph
    assert graph["flexible_spec"] == [
        {"interests": [{"id": "6003430696269", "name": "Travel"}]}
    ]
