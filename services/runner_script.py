import logging
import os
import sys
from datetime import date

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from api.database import get_db
from services.route_optimiser import RouteOptimiser
from services.settings import OptimizationSettings

logging.basicConfig(level=logging.DEBUG, format="%(levelname)s:%(name)s:%(message)s")
logger = logging.getLogger(__name__)


def main():
    trip_date = sys.argv[1] if len(sys.argv) > 1 else date.today().isoformat()
    admin_id = sys.argv[2] if len(sys.argv) > 2 else "cli"
    logger.info(f"Starting route optimization runner for {trip_date}.")

    db_session = None
    try:
        db_session = next(get_db())

        optimiser = RouteOptimiser(db_session, OptimizationSettings.from_env())
        outcome = optimiser.run_optimization(trip_date, admin_id)

        if outcome.has_existing_transfers:
            summary = outcome.existing.summary
            logger.info(
                f"Transfers already executed for {trip_date}: {summary.total_transfers} "
                f"across {summary.affected_routes} routes. Re-optimize to plan again."
            )
            return

        for route in outcome.plan.routes:
            logger.info(
                f"{route.route_name} ({route.route_number}): {route.transfer_type}, "
                f"{route.transferable_passengers}/{route.total_passengers} transferable, "
                f"savings {route.estimated_savings}"
            )
        logger.info(f"Summary: {outcome.plan.summary}")

    except Exception as e:
        logger.error(
            f"An unexpected error occurred during optimization: {e}", exc_info=True
        )
        if db_session:
            db_session.rollback()
    finally:
        if db_session:
            db_session.close()


if __name__ == "__main__":
    main()
