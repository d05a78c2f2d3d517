from typing import Any, Dict, List


# Agents of the real generation pipeline, in the order they report progress
STEPS = [
    ("intent", "Understanding your travel preferences"),
    ("destination", "Researching the destination"),
    ("budget", "Estimating the budget"),
    ("itinerary", "Building the day-by-day itinerary"),
    ("optimizer", "Optimizing the plan"),
]

DEFAULT_INTERESTS = ["sightseeing"]


def build_days(destination: str, duration: int, interests: List[str]) -> List[Dict[str, Any]]:
    interests = interests or DEFAULT_INTERESTS
    days = []
    for i in range(max(duration, 1)):
        interest = interests[i % len(interests)]
        days.append(
            {
                "day": i + 1,
                "activities": [
                    {
                        "name": f"{interest.title()} in {destination}",
                        "description": f"Explore {destination} with a focus on {interest}",
                        "duration": "2-3 hours",
                        "location": destination,
                        "time": "09:00",
                        "type": interest,
                    }
                ],
                "meals": [
                    {"type": "breakfast", "name": "Local Breakfast", "location": destination, "cuisine": "local"},
                    {"type": "lunch", "name": "Restaurant Lunch", "location": destination},
                    {"type": "dinner", "name": "Dinner Experience", "location": destination},
                ],
            }
        )
    return days


def estimate_cost(duration: int, travelers: int, currency: str) -> Dict[str, Any]:
    return {
        "currency": currency,
        "min": duration * 100 * travelers,
        "max": duration * 300 * travelers,
    }


def render_itinerary_html(title: str, days: List[Dict[str, Any]]) -> str:
    parts = [f"<h1>{title}</h1>"]
    for day in days:
        names = "".join(f"<li>{a['time']} {a['name']}</li>" for a in day["activities"])
        parts.append(f"<h2>Day {day['day']}</h2><ul>{names}</ul>")
    return "".join(parts)


def render_budget_html(cost: Dict[str, Any]) -> str:
    return f"<p>Estimated cost: {cost['min']}-{cost['max']} {cost['currency']}</p>"
