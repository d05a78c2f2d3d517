from tripstream import EventChannel, TripPreferences
from tripstream.models import SSEFrame


def test_payload_folds_legacy_fields():
    prefs = TripPreferences(
        city="Kyoto",
        budget=2500,
        arrival_date_time="2026-04-01T09:00:00Z",
        departure_date_time="2026-04-04T18:00:00Z",
    )
    payload = prefs.to_payload()
    assert payload["state"] == "Kyoto"
    assert (payload["budgetRange"], payload["budgetRangeString"]) == ("moderate", "$1000-$3000")
    assert payload["startDateTime"] == "2026-04-01T09:00:00Z"
    assert payload["endDateTime"] == "2026-04-04T18:00:00Z"
    assert "city" not in payload and "budget" not in payload


def test_payload_budget_buckets():
    assert TripPreferences(budget=800).to_payload()["budgetRange"] == "budget"
    assert TripPreferences(budget=5000).to_payload()["budgetRangeString"] == "$3000+"
    explicit = TripPreferences(budget=5000, budgetRange="budget").to_payload()
    assert explicit["budgetRange"] == "budget"


def test_payload_omits_unset_dates_and_keeps_explicit_state():
    payload = TripPreferences(destination="Paris", state="Ile-de-France").to_payload()
    assert payload["state"] == "Ile-de-France"
    assert payload["destination"] == "Paris"
    assert "startDateTime" not in payload and "endDateTime" not in payload


def test_channel_calls_event_handlers_before_progress_handlers():
    calls = []
    channel = EventChannel()
    channel.subscribe(on_progress=lambda p: calls.append(("progress", p.step)))
    channel.subscribe(on_event=lambda e, d: calls.append(("event", e)))
    channel.publish(SSEFrame(event="progress", data="{}", payload={"step": "budget", "status": "completed", "message": "ok"}))
    assert calls == [("event", "progress"), ("progress", "budget")]


def test_unsubscribed_handler_stops_receiving():
    seen = []

    def handler(event, data):
        seen.append(event)

    channel = EventChannel()
    channel.subscribe(on_event=handler)
    channel.publish(SSEFrame(event="connected", data="{}", payload={}))
    channel.unsubscribe(handler)
    channel.publish(SSEFrame(event="complete", data="{}", payload={}))
    assert seen == ["connected"]
    assert channel.delivered == 2
