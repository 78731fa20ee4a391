import dataclasses
import datetime

import pytest

from richpipe.dataclasses.presence import Activity, ActivityType, Button, PresenceBuilder
from richpipe.exc import ValidationError


def test_details_limit():
    PresenceBuilder().set_details("a" * 128)

    with pytest.raises(ValidationError):
        PresenceBuilder().set_details("a" * 129)


def test_state_limit():
    with pytest.raises(ValidationError):
        PresenceBuilder().set_state("a" * 129)


def test_image_text_limit():
    with pytest.raises(ValidationError):
        PresenceBuilder().set_large_image("logo", "a" * 129)

    with pytest.raises(ValidationError):
        PresenceBuilder().set_small_image("logo", "a" * 129)

    with pytest.raises(ValidationError):
        PresenceBuilder().set_assets(large_image="logo", small_text="a" * 129)


def test_party_after_buttons_fails():
    builder = PresenceBuilder().set_buttons([("Website", "https://example.com")])

    with pytest.raises(ValidationError):
        builder.set_party("party-1", 1, 4)


def test_secrets_after_buttons_fails():
    builder = PresenceBuilder().add_button("Website", "https://example.com")

    with pytest.raises(ValidationError):
        builder.set_secrets(join="join-secret")


def test_buttons_after_party_fail():
    builder = PresenceBuilder().set_party("party-1", 1, 4)

    with pytest.raises(ValidationError):
        builder.add_button("Website", "https://example.com")

    with pytest.raises(ValidationError):
        builder.set_buttons([{"label": "Website", "url": "https://example.com"}])


def test_build_rejects_party_with_buttons():
    with pytest.raises(ValidationError):
        PresenceBuilder() \
            .set_party("party-1", 1, 4) \
            .add_button("Website", "https://example.com") \
            .build()


def test_button_limits():
    with pytest.raises(ValidationError):
        PresenceBuilder().add_button("a" * 33, "https://example.com")

    with pytest.raises(ValidationError):
        PresenceBuilder().add_button("Website", "https://example.com/" + "a" * 493)

    builder = PresenceBuilder().add_button("One", "https://one.example").add_button(
        "Two", "https://two.example")
    with pytest.raises(ValidationError):
        builder.add_button("Three", "https://three.example")

    with pytest.raises(ValidationError):
        PresenceBuilder().set_buttons([("One", "https://one.example"),
                                       ("Two", "https://two.example"),
                                       ("Three", "https://three.example")])


def test_party_size_cannot_exceed_max():
    PresenceBuilder().set_party("party-1", 4, 4)

    with pytest.raises(ValidationError):
        PresenceBuilder().set_party("party-1", 5, 4)


@pytest.mark.parametrize("size, max", [(-1, 4), ("2", 4), (2, "4"), (2, None), (1.5, 4), (True, 4)])
def test_party_sizes_must_be_non_negative_integers(size, max):
    with pytest.raises(ValidationError):
        PresenceBuilder().set_party("party-1", size, max)


def test_end_cannot_precede_start():
    with pytest.raises(ValidationError):
        PresenceBuilder().set_timestamps(start=2000, end=1000)

    builder = PresenceBuilder().set_end_timestamp(1000)
    with pytest.raises(ValidationError):
        builder.set_start_timestamp(2000)


def test_unknown_type():
    assert PresenceBuilder().set_type(3).build().type is ActivityType.WATCHING

    with pytest.raises(ValidationError):
        PresenceBuilder().set_type(4)


def test_validation_error_is_value_error():
    with pytest.raises(ValueError):
        PresenceBuilder().set_details("a" * 200)


def test_build_produces_wire_dict():
    start = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
    activity = PresenceBuilder() \
        .set_type(ActivityType.LISTENING) \
        .set_details("Testing richpipe") \
        .set_state("In the playground") \
        .set_start_timestamp(start) \
        .set_large_image("logo", "Icon") \
        .set_small_image("badge") \
        .add_button("Website", "https://example.com") \
        .build()

    assert activity.to_dict() == {
        "type": 2,
        "details": "Testing richpipe",
        "state": "In the playground",
        "timestamps": {"start": 1704067200000},
        "assets": {"large_image": "logo", "large_text": "Icon", "small_image": "badge"},
        "buttons": [{"label": "Website", "url": "https://example.com"}],
    }


def test_party_and_secrets_wire_dict():
    activity = PresenceBuilder() \
        .set_party("party-1", 2, 5) \
        .set_secrets(join="j", match="m") \
        .set_instance(True) \
        .build()

    d = activity.to_dict()
    assert d["party"] == {"id": "party-1", "size": [2, 5]}
    assert d["secrets"] == {"join": "j", "match": "m"}
    assert d["instance"] is True
    assert "buttons" not in d


def test_built_activity_is_immutable():
    builder = PresenceBuilder().set_details("first")
    activity = builder.build()

    with pytest.raises(dataclasses.FrozenInstanceError):
        activity.details = "changed"

    builder.set_details("second")
    assert activity.details == "first"
    assert builder.build().details == "second"


def test_empty_activity():
    assert PresenceBuilder().build() == Activity()
    assert Activity().to_dict() == {"type": 0}


def test_set_buttons_accepts_button_objects():
    activity = PresenceBuilder().set_buttons([Button("Docs", "https://docs.example")]).build()
    assert activity.buttons == (Button("Docs", "https://docs.example"),)
