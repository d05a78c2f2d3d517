from __future__ import annotations

from typing import Any, Optional
from pathlib import Path
import asyncio
import json
import logging

import typer
from rich.console import Console

from tripstream import ApiClient, JsonFileStore, StreamingClient, TripPlanCache, TripPreferences, TripService
from tripstream.config import CONFIG
from tripstream.models import Failure, ProgressUpdate


app = typer.Typer()
cache_app = typer.Typer(help="Inspect or clear the local plan cache.")
app.add_typer(cache_app, name="cache")
console = Console()
trace_console = Console(stderr=True)


def build_api() -> ApiClient:
    return ApiClient()


def build_cache() -> TripPlanCache:
    return TripPlanCache(JsonFileStore(CONFIG.cache_path))


def _print_failure(outcome: Failure) -> None:
    status = f" (HTTP {outcome.status})" if outcome.status else ""
    trace_console.print(f"Request failed ({outcome.code}){status}: {outcome.message}", style="bold red")


def _print_plan(plan: Any) -> None:
    if not isinstance(plan, dict):
        console.print(plan)
        return
    console.print(f"## {plan.get('title') or plan.get('destination') or 'Trip plan'}", style="bold", markup=False)
    for day in plan.get("itinerary") or []:
        if not isinstance(day, dict):
            continue
        console.print(f"\n### Day {day.get('day')}")
        for activity in day.get("activities") or []:
            console.print(f"- {activity.get('time', '')} {activity.get('name', '')}".rstrip(), markup=False)
    cost = plan.get("estimatedCost")
    if isinstance(cost, dict):
        console.print(f"\nEstimated cost: {cost.get('min')}-{cost.get('max')} {cost.get('currency', '')}")


@app.command()
def plan(
    destination: str = typer.Argument(..., help="Where to go."),
    duration: int = typer.Option(3, "--duration", "-d", help="Trip length in days."),
    travelers: int = typer.Option(1, "--travelers", "-t", help="Number of travelers."),
    interests: Optional[list[str]] = typer.Option(
        None, "--prefer", "-p", help="Interests for the itinerary (e.g., 'museums', 'food')."
    ),
    budget: Optional[float] = typer.Option(None, "--budget", help="Total budget."),
    currency: str = typer.Option("USD", "--currency", help="Budget currency (ISO code)."),
    origin: Optional[str] = typer.Option(None, "--origin", help="Departure city."),
    style: Optional[str] = typer.Option(None, "--style", help="Travel style (leisure, adventure, ...)."),
    season: Optional[str] = typer.Option(None, "--season", help="Preferred season."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Skip the cache lookup and regenerate."),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Save the plan as JSON."),
) -> None:
    """Generate a trip plan, streaming progress while the backend works."""
    preferences = TripPreferences(
        destination=destination,
        duration=duration,
        travelers=travelers,
        interests=interests or [],
        budget=budget,
        currency=currency,
        origin=origin,
        travel_type=style,
        season=season,
    )

    def on_progress(update: ProgressUpdate) -> None:
        trace_console.print(f"progress: {update.step} -> {update.status}: {update.message}", style="dim")

    def on_event(event: str, data: Any) -> None:
        if event == "itinerary-day" and isinstance(data, dict):
            trace_console.print(f"trace: day {data.get('day')} drafted", style="dim")

    async def run() -> Any:
        async with build_api() as api:
            client = StreamingClient(api, build_cache())
            return await client.generate(preferences, on_progress=on_progress, on_event=on_event, bypass_cache=no_cache)

    with console.status("Planning your trip..."):
        outcome = asyncio.run(run())

    if isinstance(outcome, Failure):
        _print_failure(outcome)
        raise typer.Exit(code=1)

    if outcome.cached:
        trace_console.print("cache: served from local plan cache", style="dim")
    _print_plan(outcome.data)

    if output_file:
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            output_file.write_text(json.dumps(outcome.data, indent=2), encoding="utf-8")
            console.print(f"\nSaved plan to {output_file}", style="green")
        except OSError as e:
            trace_console.print(f"Failed to write file: {e}", style="bold red")


@app.command()
def trips() -> None:
    """List recently generated trips."""

    async def run() -> Any:
        async with build_api() as api:
            return await TripService(api).get_history()

    outcome = asyncio.run(run())
    if isinstance(outcome, Failure):
        _print_failure(outcome)
        raise typer.Exit(code=1)
    for trip in outcome.data or []:
        console.print(f"{trip.get('id')}  {trip.get('title') or trip.get('destination')}", markup=False)


@cache_app.command("clear")
def cache_clear() -> None:
    removed = build_cache().clear()
    console.print(f"Removed {removed} cached plan(s).", style="green")


@cache_app.command("evict")
def cache_evict() -> None:
    removed = build_cache().evict_expired()
    console.print(f"Evicted {removed} expired plan(s).", style="green")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s - %(levelname)s - %(message)s")
    app()
