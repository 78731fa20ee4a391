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
A module that assists with the OAuth2 half of RPC authentication.

The IPC ``AUTHORIZE`` command hands back an authorization code; that code has to be exchanged
for an access token over plain HTTPS before it can be passed to ``AUTHENTICATE``.

.. currentmodule:: richpipe.oauth
"""
import datetime
import enum
import logging
from typing import List, Union
from urllib.parse import parse_qsl

from asks.sessions import Session
from oauthlib.oauth2.rfc6749.clients import WebApplicationClient

from richpipe.exc import OAuth2Error

logger = logging.getLogger("richpipe.oauth")

BASE = "https://discord.com"
TOKEN_URL = "/api/oauth2/token"


class OAuth2Scope(enum.Enum):
    """
    OAuth2 scopes that are useful over RPC.
    """
    #: Allows access to basic user info.
    IDENTIFY = 'identify'
    #: Allows access to basic user info + their email.
    EMAIL = 'email'
    #: Allows access to the connections of a user.
    CONNECTIONS = 'connections'
    #: Allows access to user guild objects for this user.
    GUILDS = 'guilds'

    #: Allows reading messages via RPC.
    MESSAGES_READ = 'messages.read'
    #: Allows RPC client control.
    RPC = 'rpc'
    #: Allows RPC API control.
    RPC_API = 'rpc.api'
    #: Allows RPC notification reading.
    RPC_NOTIFICATIONS_READ = 'rpc.notifications.read'
    #: Allows setting activities over RPC.
    RPC_ACTIVITIES_WRITE = 'rpc.activities.write'
    #: Allows reading voice settings over RPC.
    RPC_VOICE_READ = 'rpc.voice.read'
    #: Allows changing voice settings over RPC.
    RPC_VOICE_WRITE = 'rpc.voice.write'


class OAuth2Token(object):
    """
    Represents a token returned from the Discord OAuth2 API.
    """

    def __init__(self, token_type: str, scope: str,
                 access_token: str, refresh_token: str, expiration_time: datetime.datetime):
        #: The token type of the token (normally ``Bearer``).
        self.token_type = token_type

        #: A list of scope names this token is authenticated for.
        self.scopes = scope.split(" ") if scope else []  # type: List[str]

        #: The actual access token to be used.
        self.access_token = access_token

        #: The refresh token to be used during a refresh.
        self.refresh_token = refresh_token

        #: The time this token expires at.
        self.expiration_time = expiration_time

    @classmethod
    def from_dict(cls, d: dict) -> 'OAuth2Token':
        """
        Creates a token from a dict, similar to one provided by the token endpoint.
        """
        expiration_time = d.get("expiration_time")
        if expiration_time is None:
            expiration_time = datetime.datetime.now(datetime.timezone.utc) + \
                              datetime.timedelta(seconds=d.get("expires_in", 0))

        return cls(token_type=d.get("token_type", "Bearer"),
                   scope=d.get("scope", ""),
                   access_token=d["access_token"],
                   refresh_token=d.get("refresh_token"),
                   expiration_time=expiration_time)

    @property
    def expired(self) -> bool:
        return self.expiration_time < datetime.datetime.now(datetime.timezone.utc)

    def __repr__(self) -> str:
        return "<OAuth2Token access='{}' refresh='{}'>".format(self.access_token,
                                                               self.refresh_token)


async def exchange_code(client_id: Union[int, str], client_secret: str, code: str,
                        redirect_uri: str, *, session: Session = None) -> OAuth2Token:
    """
    Exchanges an authorization code for an access token.

    .. code-block:: python3

        authorization = await ipc.authorize([OAuth2Scope.RPC, OAuth2Scope.IDENTIFY])
        token = await exchange_code(client_id, client_secret, authorization["code"],
                                    "http://localhost")
        await ipc.authenticate(token.access_token)

    :param client_id: The client ID of the application.
    :param client_secret: The client secret of the application.
    :param code: The authorization code returned by ``AUTHORIZE``.
    :param redirect_uri: A redirect URI registered on the application.
    :param session: The :class:`asks.sessions.Session` to use. A new one is made if not given.
    :return: The :class:`.OAuth2Token` for the code.
    :raises OAuth2Error: If Discord rejected the exchange.
    """
    oauth2_client = WebApplicationClient(client_id=str(client_id))
    body = oauth2_client.prepare_request_body(code=code, redirect_uri=redirect_uri,
                                              client_secret=client_secret,
                                              include_client_id=True)

    if session is None:
        session = Session(base_location=BASE)

    logger.debug("Exchanging authorization code for client %s", client_id)
    response = await session.post(
        path=TOKEN_URL,
        data=dict(parse_qsl(body)),
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )

    try:
        data = response.json()
    except ValueError:
        data = {"message": response.text}

    if not 200 <= response.status_code < 300:
        raise OAuth2Error(response.status_code, data)

    return OAuth2Token.from_dict(data)
