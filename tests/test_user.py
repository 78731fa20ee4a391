from richpipe.dataclasses.user import ReadyEvent, User


def test_ready_event_from_dict():
    ready = ReadyEvent.from_dict({
        "v": 1,
        "config": {"cdn_host": "cdn.discordapp.com"},
        "user": {"id": "80351110224678912", "username": "alice", "global_name": "Alice"},
    })

    assert ready.v == 1
    assert ready.config["cdn_host"] == "cdn.discordapp.com"
    assert ready.user.username == "alice"
    assert ready.user.name == "Alice"


def test_ready_event_without_user():
    ready = ReadyEvent.from_dict({})
    assert ready.user is None
    assert ready.config == {}


def test_default_avatar_url():
    user = User(id="80351110224678912", username="alice")
    index = (80351110224678912 >> 22) % 6
    assert user.avatar_url() == "https://cdn.discordapp.com/embed/avatars/{}.png".format(index)


def test_avatar_url():
    user = User(id="1", username="alice", avatar="abcdef")
    assert user.avatar_url() == "https://cdn.discordapp.com/avatars/1/abcdef.png?size=512"
    assert user.avatar_url(extension="webp", size=128) == \
        "https://cdn.discordapp.com/avatars/1/abcdef.webp?size=128"


def test_animated_avatar_url():
    user = User(id="1", username="alice", avatar="a_abcdef")
    assert user.avatar_url() == "https://cdn.discordapp.com/avatars/1/a_abcdef.gif?size=512"
    assert user.avatar_url(force_static=True) == \
        "https://cdn.discordapp.com/avatars/1/a_abcdef.png?size=512"
