"""Crisis helplines shown on the support tab."""
from __future__ import annotations

from typing import Dict, List

HELPLINES: List[Dict[str, str]] = [
    {
        "name": "National Suicide Prevention Helpline",
        "number": "9152987821",
        "hours": "24/7",
        "description": "Immediate crisis support and suicide prevention",
    },
    {
        "name": "Vandrevala Foundation",
        "number": "9999666555",
        "hours": "24/7",
        "description": "Mental health support and counseling",
    },
    {
        "name": "AASRA",
        "number": "9820466726",
        "hours": "24/7",
        "description": "Emotional support and crisis intervention",
    },
    {
        "name": "Sneha India",
        "number": "044-24640050",
        "hours": "24/7",
        "description": "Suicide prevention and emotional support",
    },
    {
        "name": "iCall Tata Institute",
        "number": "9152987821",
        "hours": "10 AM - 8 PM (Mon-Sat)",
        "description": "Professional counseling support",
    },
    {
        "name": "Sumaitri",
        "number": "011-23389090",
        "hours": "2 PM - 10 PM",
        "description": "Delhi-based emotional support",
    },
]

EMERGENCY_TIPS = [
    "If you're having thoughts of self-harm, reach out immediately",
    "You are not alone - crisis support is available 24/7",
    "It's okay to ask for help - seeking support shows strength",
    "Your feelings are valid and temporary - this will pass",
    "Emergency services: Call 100 (Police) or 102 (Ambulance)",
]


def tel_link(helpline: Dict[str, str]) -> str:
    """
    >>> tel_link({"number": "044-24640050"})
    'tel:04424640050'
    """
    digits = "".join(c for c in helpline["number"] if c.isdigit() or c == "+")
    return f"tel:{digits}"
