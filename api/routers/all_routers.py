# api/routers/all_routers.py

# Import all individual routers
from . import (
    booking,
    route,
    route_optimization,
    stop_alias,
    student,
)

# Create a list of all routers
all_routers = [
    booking.router,
    route.router,
    route_optimization.router,
    stop_alias.router,
    student.router,
]
