"""
Shared fixtures: a small salon with two professionals on Monday 2024-11-25.
"""

import pytest

TZ = "America/Argentina/Buenos_Aires"


@pytest.fixture
def salon_data():
    """Raw salon data in the JSON store layout."""
    return {
        "professionals": [
            {"id": "ana", "name": "Ana", "phone": "1155550001"},
            {"id": "bruno", "name": "Bruno", "phone": "1155550002"},
            {"id": "carla", "name": "Carla", "active": False},
        ],
        "services": [
            {"id": "corte", "name": "Corte", "duration_minutes": 45, "cash_price": 12000, "card_price": 13500},
            {"id": "color", "name": "Color", "duration_minutes": 120, "cash_price": 38000, "card_price": 42000},
            {"id": "alisado", "name": "Alisado", "duration_minutes": 90, "cash_price": 50000,
             "card_price": 55000, "active": False},
        ],
        "clients": [
            {"id": "c-001", "name": "Lucía Gómez", "phone": "1144443333"},
        ],
        "working_hours": [
            {"id": "wh-1", "professional_id": "ana", "day_of_week": 1, "start": "09:00", "end": "13:00"},
            {"id": "wh-2", "professional_id": "ana", "day_of_week": 1, "start": "16:00", "end": "20:00"},
            {"id": "wh-3", "professional_id": "bruno", "day_of_week": 1, "start": "10:00", "end": "19:00"},
            {"id": "wh-4", "professional_id": "bruno", "day_of_week": 2, "start": "10:00", "end": "19:00",
             "active": False},
        ],
        "appointments": [
            {"id": "a-001", "professional_id": "ana", "service_id": "corte", "client_id": "c-001",
             "start": "2024-11-25T10:00:00-03:00", "end": "2024-11-25T10:45:00-03:00",
             "status": "confirmed", "price_charged": 12000},
            {"id": "a-002", "professional_id": "ana", "service_id": "corte", "client_id": "c-001",
             "start": "2024-11-25T11:00:00-03:00", "end": "2024-11-25T11:45:00-03:00",
             "status": "cancelled", "price_charged": 12000},
        ],
        "blocks": [
            {"id": "b-001", "professional_id": "bruno", "start": "2024-11-25T13:00:00-03:00",
             "end": "2024-11-25T14:00:00-03:00", "reason": "Almuerzo"},
        ],
    }
