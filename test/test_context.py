import logging

from pyreport import ClientContext, Event, Level, User, apply_client_context
from pyreport.context import attach_breadcrumbs


class RecordingCrashHandler:
    def __init__(self):
        self.started = False
        self.calls = []
        self.breadcrumbs = None
        self.tags = None
        self.extra = None
        self.user = None
        self.release_version = None

    def start_crash_reporting(self):
        self.started = True

    def set_breadcrumbs(self, serialized):
        self.calls.append("breadcrumbs")
        self.breadcrumbs = serialized

    def set_tags(self, tags):
        self.calls.append("tags")
        self.tags = tags

    def set_extra(self, extra):
        self.calls.append("extra")
        self.extra = extra

    def set_user(self, user):
        self.calls.append("user")
        self.user = user

    def set_release_version(self, release_version):
        self.calls.append("release_version")
        self.release_version = release_version


def make_context() -> ClientContext:
    context = ClientContext(release_version="1.0.0")
    context.set_user(User(user_id="client-user"))
    context.set_tags({"env": "prod"})
    context.set_extra({"build": 7})
    context.breadcrumbs.add("nav", "opened")
    return context


def test_error_event_takes_client_context():
    context = make_context()
    event = Event(message="boom", level=Level.ERROR)

    apply_client_context(event, context)

    assert event.user.user_id == "client-user"
    assert event.release_version == "1.0.0"
    assert event.tags == {"env": "prod"}
    assert event.extra == {"build": 7}
    assert [crumb["message"] for crumb in event.breadcrumbs_serialized["values"]] == ["opened"]
    # Test 1: Error-level events consume the store
    assert len(context.breadcrumbs) == 0


def test_event_values_win_for_user_and_release():
    context = make_context()
    own_user = User(user_id="event-user")
    event = Event(message="boom", user=own_user, release_version="2.0.0")

    apply_client_context(event, context)

    assert event.user is own_user
    assert event.release_version == "2.0.0"


def test_client_tags_and_extra_overwrite_event_keys():
    context = make_context()
    event = Event(message="boom", tags={"env": "dev", "route": "/a"}, extra={"build": 1, "attempt": 2})

    apply_client_context(event, context)

    assert event.tags == {"env": "prod", "route": "/a"}
    assert event.extra == {"build": 7, "attempt": 2}


def test_unserializable_client_tags_leave_event_untouched(caplog):
    context = make_context()
    context.set_tags({"good": "yes", "bad": object()})
    event = Event(message="boom", tags={"route": "/a"})

    with caplog.at_level(logging.DEBUG, logger="pyreport.context"):
        apply_client_context(event, context)

    assert event.tags == {"route": "/a"}
    # Extra is merged independently of the rejected tags.
    assert event.extra == {"build": 7}
    assert "Skipping merge of client tags" in caplog.text


def test_non_scalar_client_tag_is_rejected_as_a_whole():
    context = make_context()
    context.set_tags({"good": "yes", "nested": {"a": 1}})
    event = Event(message="boom")

    apply_client_context(event, context)

    assert event.tags == {}


def test_unserializable_client_extra_leaves_event_untouched():
    context = make_context()
    context.set_extra({"handle": object()})
    event = Event(message="boom", extra={"kept": True})

    apply_client_context(event, context)

    assert event.extra == {"kept": True}
    assert event.tags == {"env": "prod"}


def test_fatal_event_is_left_untouched():
    context = make_context()
    event = Event(message="crash", level=Level.FATAL)

    apply_client_context(event, context)

    assert event.user is None
    assert event.release_version is None
    assert event.tags == {}
    assert event.extra == {}
    assert event.breadcrumbs_serialized is None
    assert len(context.breadcrumbs) == 1


def test_non_error_levels_keep_breadcrumbs():
    context = make_context()
    for level in (Level.DEBUG, Level.INFO, Level.WARNING):
        event = Event(message="note", level=level)
        apply_client_context(event, context)
        assert event.breadcrumbs_serialized is None
        assert event.tags == {"env": "prod"}
    assert len(context.breadcrumbs) == 1


def test_attach_breadcrumbs_alone():
    context = make_context()
    event = Event(message="boom")
    attach_breadcrumbs(event, context)
    assert len(event.breadcrumbs_serialized["values"]) == 1
    assert event.tags == {}
    assert event.user is None


def test_crash_handler_is_seeded_and_started():
    context = make_context()
    handler = RecordingCrashHandler()

    context.attach_crash_handler(handler)

    assert handler.started
    assert handler.user.user_id == "client-user"
    assert handler.tags == {"env": "prod"}
    assert handler.extra == {"build": 7}
    assert handler.release_version == "1.0.0"
    assert len(handler.breadcrumbs["values"]) == 1


def test_crash_handler_mirrors_every_change():
    context = ClientContext()
    handler = RecordingCrashHandler()
    context.attach_crash_handler(handler)
    handler.calls.clear()

    context.set_tag("a", 1)
    context.set_extra_value("b", 2)
    context.set_user(User(user_id="u"))
    context.set_release_version("3.0")
    context.breadcrumbs.add("nav")

    assert handler.calls == ["tags", "extra", "user", "release_version", "breadcrumbs"]
    assert handler.tags == {"a": 1}
    assert handler.extra == {"b": 2}
    assert handler.user.user_id == "u"
    assert handler.release_version == "3.0"
    assert len(handler.breadcrumbs["values"]) == 1

    # Consumption by an error event is mirrored too.
    apply_client_context(Event(message="boom"), context)
    assert handler.breadcrumbs == {"values": []}


def test_context_setters_copy_mappings():
    context = ClientContext()
    tags = {"a": 1}
    context.set_tags(tags)
    tags["b"] = 2
    assert context.tags == {"a": 1}
