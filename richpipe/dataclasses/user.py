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
Wrappers for the user and session data sent in the READY event.

.. currentmodule:: richpipe.dataclasses.user
"""
from dataclasses import dataclass, field
from typing import Optional

CDN_URL = "https://cdn.discordapp.com"


@dataclass(frozen=True)
class User:
    """
    Represents the user logged into the Discord client.
    """

    #: The ID of this user.
    id: Optional[str] = None

    #: The username of this user.
    username: Optional[str] = None

    #: The discriminator of this user.
    #: Note: This is a string, not an integer. Migrated users have a discriminator of ``0``.
    discriminator: str = "0"

    #: The display name of this user, if one is set.
    global_name: Optional[str] = None

    #: The avatar hash of this user.
    avatar: Optional[str] = None

    #: If this user is a bot.
    bot: bool = False

    #: The public flags of this user.
    flags: int = 0

    #: The premium type of this user.
    premium_type: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> 'User':
        return cls(
            id=d.get("id"),
            username=d.get("username"),
            discriminator=d.get("discriminator", "0"),
            global_name=d.get("global_name"),
            avatar=d.get("avatar"),
            bot=d.get("bot", False),
            flags=d.get("flags", 0),
            premium_type=d.get("premium_type", 0),
        )

    @property
    def name(self) -> Optional[str]:
        """
        :return: The display name of this user if set, otherwise the username.
        """
        return self.global_name or self.username

    def avatar_url(self, *, extension: str = "png", size: int = 512,
                   force_static: bool = False) -> str:
        """
        Gets the URL of this user's avatar.

        :param extension: The image format to use. Usually ``png``, ``webp``, ``jpeg`` or ``gif``.
        :param size: The size of the image, as a power of two.
        :param force_static: If True, animated avatars are returned as a still image.
        :return: The string URL for this avatar.
        """
        if not self.avatar or self.avatar == "default":
            index = (int(self.id or 0) >> 22) % 6
            return f"{CDN_URL}/embed/avatars/{index}.png"

        if self.avatar.startswith("a_") and not force_static:
            extension = "gif"

        return f"{CDN_URL}/avatars/{self.id}/{self.avatar}.{extension}?size={size}"


@dataclass(frozen=True)
class ReadyEvent:
    """
    Represents the data sent by the Discord client once the handshake succeeds.
    """

    #: The RPC version of the Discord client.
    v: int = 1

    #: The client config, containing ``cdn_host``, ``api_endpoint`` and ``environment``.
    config: dict = field(default_factory=dict)

    #: The :class:`.User` logged into the Discord client.
    user: Optional[User] = None

    @classmethod
    def from_dict(cls, d: dict) -> 'ReadyEvent':
        user = d.get("user")
        return cls(
            v=d.get("v", 1),
            config=d.get("config") or {},
            user=User.from_dict(user) if user is not None else None,
        )
