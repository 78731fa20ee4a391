# This file is part of richpipe.
#
# richpipe is free software: you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# richpipe is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with richpipe.  If not, see <http://www.gnu.org/licenses/>.

"""
Wrappers for Rich Presence activities, and the builder used to create them.

.. currentmodule:: richpipe.dataclasses.presence
"""
import datetime
import enum
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from richpipe.exc import ValidationError
from richpipe.util import to_milliseconds

#: The maximum length of the details, state and image tooltip fields.
MAX_TEXT_LENGTH = 128

#: The maximum number of buttons on an activity.
MAX_BUTTONS = 2

#: The maximum length of a button label.
MAX_BUTTON_LABEL_LENGTH = 32

#: The maximum length of a button URL.
MAX_BUTTON_URL_LENGTH = 512

Timestamp = Union[int, float, datetime.datetime]

_CONFLICT_MESSAGE = "Discord does not display buttons if a party or secrets are present"


class ActivityType(enum.IntEnum):
    """
    Represents an activity's type.
    """
    #: Shows the ``Playing`` text.
    PLAYING = 0

    #: Shows the ``Streaming`` text.
    STREAMING = 1

    #: Shows the ``Listening to`` text.
    LISTENING = 2

    #: Shows the ``Watching`` text.
    WATCHING = 3

    #: Shows the ``Competing in`` text.
    COMPETING = 5


def _check_length(field: str, value: Optional[str], max_size: int) -> Optional[str]:
    if value is None:
        return None

    if not isinstance(value, str):
        raise ValidationError("Field '{}' must be a string, not {}"
                              .format(field, type(value).__name__))

    if len(value) > max_size:
        raise ValidationError("Field '{}' cannot be longer than {} characters"
                              .format(field, max_size))

    return value


def _check_size(field: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Field '{}' must be an integer, not {}"
                              .format(field, type(value).__name__))

    if value < 0:
        raise ValidationError("Field '{}' cannot be negative".format(field))

    return value


def _drop_none(d: dict) -> dict:
    return {k: v for (k, v) in d.items() if v is not None}


@dataclass(frozen=True)
class Assets:
    """
    The images shown on an activity, with their hover text.
    """
    large_image: Optional[str] = None
    large_text: Optional[str] = None
    small_image: Optional[str] = None
    small_text: Optional[str] = None

    def to_dict(self) -> dict:
        return _drop_none({
            "large_image": self.large_image,
            "large_text": self.large_text,
            "small_image": self.small_image,
            "small_text": self.small_text,
        })


@dataclass(frozen=True)
class Timestamps:
    """
    The start and end of an activity, in milliseconds since the epoch.
    """
    start: Optional[int] = None
    end: Optional[int] = None

    def to_dict(self) -> dict:
        return _drop_none({"start": self.start, "end": self.end})


@dataclass(frozen=True)
class Party:
    """
    The party the user is in.
    """
    id: str
    size: int
    max: int

    def to_dict(self) -> dict:
        return {"id": self.id, "size": [self.size, self.max]}


@dataclass(frozen=True)
class Secrets:
    """
    The secrets used for joining and spectating games.
    """
    join: Optional[str] = None
    spectate: Optional[str] = None
    match: Optional[str] = None

    def to_dict(self) -> dict:
        return _drop_none({"join": self.join, "spectate": self.spectate, "match": self.match})


@dataclass(frozen=True)
class Button:
    """
    A button linking to a URL.
    """
    label: str
    url: str

    def to_dict(self) -> dict:
        return {"label": self.label, "url": self.url}


@dataclass(frozen=True)
class Activity:
    """
    Represents a Rich Presence activity. Create these with a :class:`.PresenceBuilder`, which
    checks every field against the limits of the protocol.
    """
    type: ActivityType = ActivityType.PLAYING
    details: Optional[str] = None
    state: Optional[str] = None
    assets: Optional[Assets] = None
    timestamps: Optional[Timestamps] = None
    party: Optional[Party] = None
    secrets: Optional[Secrets] = None
    instance: Optional[bool] = None
    buttons: Tuple[Button, ...] = ()

    def to_dict(self) -> dict:
        """
        :return: The dict representation of this activity, as sent in ``SET_ACTIVITY``.
        """
        d = {
            "type": int(self.type),
            "details": self.details,
            "state": self.state,
            "instance": self.instance,
        }

        for name in ("assets", "timestamps", "party", "secrets"):
            value = getattr(self, name)
            if value is not None:
                d[name] = value.to_dict()

        if self.buttons:
            d["buttons"] = [button.to_dict() for button in self.buttons]

        return _drop_none(d)


class PresenceBuilder(object):
    """
    Builds an :class:`.Activity` one field at a time.

    Every setter checks its own field as soon as it is called and raises
    :class:`~.ValidationError` if it breaks a limit. Buttons can't be combined with a party or
    secrets, since Discord silently hides them; this is checked when the second of the two is set,
    and again in :meth:`.build`.

    .. code-block:: python3

        activity = PresenceBuilder() \\
            .set_details("Testing richpipe") \\
            .set_state("In the playground") \\
            .set_start_timestamp(datetime.datetime.now()) \\
            .set_large_image("logo", "Icon") \\
            .build()

    """

    def __init__(self):
        self._type = ActivityType.PLAYING
        self._details = None  # type: Optional[str]
        self._state = None  # type: Optional[str]
        self._assets = None  # type: Optional[Assets]
        self._start = None  # type: Optional[int]
        self._end = None  # type: Optional[int]
        self._party = None  # type: Optional[Party]
        self._secrets = None  # type: Optional[Secrets]
        self._instance = None  # type: Optional[bool]
        self._buttons = []  # type: List[Button]

    # internal checks
    def _check_timestamps(self, start: Optional[int], end: Optional[int]):
        if start is not None and end is not None and end < start:
            raise ValidationError("End timestamp cannot be before the start timestamp")

    def _check_no_buttons(self, field: str):
        if self._buttons:
            raise ValidationError("{}. Cannot set {}.".format(_CONFLICT_MESSAGE, field))

    def _check_no_party_or_secrets(self):
        if self._party is not None or self._secrets is not None:
            raise ValidationError("{}. Cannot add buttons.".format(_CONFLICT_MESSAGE))

    @staticmethod
    def _make_button(label: str, url: str) -> Button:
        _check_length("button label", label, MAX_BUTTON_LABEL_LENGTH)
        _check_length("button url", url, MAX_BUTTON_URL_LENGTH)
        return Button(label=label, url=url)

    # setters
    def set_type(self, type_: Union[ActivityType, int]) -> 'PresenceBuilder':
        """
        Sets the activity type (e.g. Playing, Listening, Watching).
        """
        try:
            self._type = ActivityType(type_)
        except ValueError as e:
            raise ValidationError("Unknown activity type {}".format(type_)) from e

        return self

    def set_details(self, details: str) -> 'PresenceBuilder':
        """
        Sets the details (the first line) of the activity. 128 characters max.
        """
        self._details = _check_length("details", details, MAX_TEXT_LENGTH)
        return self

    def set_state(self, state: str) -> 'PresenceBuilder':
        """
        Sets the state (the second line) of the activity. 128 characters max.
        """
        self._state = _check_length("state", state, MAX_TEXT_LENGTH)
        return self

    def set_timestamps(self, start: Timestamp = None, end: Timestamp = None) -> 'PresenceBuilder':
        """
        Sets both timestamps at once.

        :param start: When the activity started, as a datetime or milliseconds since the epoch.
        :param end: When the activity ends, as a datetime or milliseconds since the epoch.
        """
        start = to_milliseconds(start) if start is not None else None
        end = to_milliseconds(end) if end is not None else None
        self._check_timestamps(start, end)
        self._start, self._end = start, end
        return self

    def set_start_timestamp(self, start: Timestamp) -> 'PresenceBuilder':
        """
        Sets the start timestamp, which shows as an "elapsed" timer.
        """
        start = to_milliseconds(start)
        self._check_timestamps(start, self._end)
        self._start = start
        return self

    def set_end_timestamp(self, end: Timestamp) -> 'PresenceBuilder':
        """
        Sets the end timestamp, which shows as a "remaining" timer.
        """
        end = to_milliseconds(end)
        self._check_timestamps(self._start, end)
        self._end = end
        return self

    def set_assets(self, large_image: str = None, large_text: str = None,
                   small_image: str = None, small_text: str = None) -> 'PresenceBuilder':
        """
        Sets every asset at once, replacing any previous assets.
        """
        self._assets = Assets(
            large_image=large_image,
            large_text=_check_length("large_text", large_text, MAX_TEXT_LENGTH),
            small_image=small_image,
            small_text=_check_length("small_text", small_text, MAX_TEXT_LENGTH),
        )
        return self

    def set_large_image(self, key: str, text: str = None) -> 'PresenceBuilder':
        """
        Sets the large image.

        :param key: The asset key of the image, or an image URL.
        :param text: The tooltip for the image. 128 characters max.
        """
        _check_length("large_text", text, MAX_TEXT_LENGTH)
        current = self._assets or Assets()
        self._assets = Assets(large_image=key, large_text=text,
                              small_image=current.small_image, small_text=current.small_text)
        return self

    def set_small_image(self, key: str, text: str = None) -> 'PresenceBuilder':
        """
        Sets the small image.

        :param key: The asset key of the image, or an image URL.
        :param text: The tooltip for the image. 128 characters max.
        """
        _check_length("small_text", text, MAX_TEXT_LENGTH)
        current = self._assets or Assets()
        self._assets = Assets(large_image=current.large_image, large_text=current.large_text,
                              small_image=key, small_text=text)
        return self

    def set_party(self, id: str, size: int, max: int) -> 'PresenceBuilder':
        """
        Sets the party the user is in. Cannot be combined with buttons.

        :param id: The ID of the party.
        :param size: The current size of the party.
        :param max: The maximum size of the party.
        """
        self._check_no_buttons("party")
        _check_length("party id", id, MAX_TEXT_LENGTH)
        _check_size("party size", size)
        _check_size("party max", max)

        if size > max:
            raise ValidationError("Party size {} is bigger than the maximum {}".format(size, max))

        self._party = Party(id=id, size=size, max=max)
        return self

    def set_secrets(self, join: str = None, spectate: str = None,
                    match: str = None) -> 'PresenceBuilder':
        """
        Sets the join, spectate and match secrets. Cannot be combined with buttons.
        """
        self._check_no_buttons("secrets")
        self._secrets = Secrets(
            join=_check_length("join secret", join, MAX_TEXT_LENGTH),
            spectate=_check_length("spectate secret", spectate, MAX_TEXT_LENGTH),
            match=_check_length("match secret", match, MAX_TEXT_LENGTH),
        )
        return self

    def set_instance(self, instance: bool) -> 'PresenceBuilder':
        """
        Sets whether this activity is an instanced context, like a match.
        """
        self._instance = bool(instance)
        return self

    def set_buttons(self, buttons: Iterable[Union[Button, dict, Tuple[str, str]]]) \
            -> 'PresenceBuilder':
        """
        Replaces the buttons on this activity. Cannot be combined with a party or secrets.

        :param buttons: Up to two buttons, either as :class:`.Button`, ``{"label", "url"}`` dicts, \
            or ``(label, url)`` tuples.
        """
        made = []
        for button in buttons:
            if isinstance(button, Button):
                label, url = button.label, button.url
            elif isinstance(button, dict):
                label, url = button["label"], button["url"]
            else:
                label, url = button

            made.append(self._make_button(label, url))

        if len(made) > MAX_BUTTONS:
            raise ValidationError("A maximum of {} buttons are allowed".format(MAX_BUTTONS))

        if made:
            self._check_no_party_or_secrets()

        self._buttons = made
        return self

    def add_button(self, label: str, url: str) -> 'PresenceBuilder':
        """
        Adds a single button. Cannot be combined with a party or secrets.

        :param label: The button label. 32 characters max.
        :param url: The URL opened by the button. 512 characters max.
        """
        if len(self._buttons) >= MAX_BUTTONS:
            raise ValidationError("A maximum of {} buttons are allowed".format(MAX_BUTTONS))

        self._check_no_party_or_secrets()
        self._buttons.append(self._make_button(label, url))
        return self

    def build(self) -> Activity:
        """
        Builds the final :class:`.Activity`.

        :raises ValidationError: If buttons have ended up next to a party or secrets.
        """
        if self._buttons and (self._party is not None or self._secrets is not None):
            raise ValidationError(_CONFLICT_MESSAGE)

        self._check_timestamps(self._start, self._end)

        timestamps = None
        if self._start is not None or self._end is not None:
            timestamps = Timestamps(start=self._start, end=self._end)

        return Activity(
            type=self._type,
            details=self._details,
            state=self._state,
            assets=self._assets,
            timestamps=timestamps,
            party=self._party,
            secrets=self._secrets,
            instance=self._instance,
            buttons=tuple(self._buttons),
        )
